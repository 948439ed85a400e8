DDL = """
CREATE TABLE IF NOT EXISTS games (
  id SERIAL PRIMARY KEY,
  player_name VARCHAR(15) NOT NULL,
  playlist_id TEXT NOT NULL,
  score INT NOT NULL DEFAULT 0 CHECK (score >= 0),
  total_questions INT NOT NULL CHECK (total_questions > 0),
  created_at TIMESTAMP NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS ix_games_playlist_score ON games(playlist_id, score DESC);
"""
