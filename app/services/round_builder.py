from __future__ import annotations

from typing import AbstractSet, List, Sequence
import random
import re

from app.schemas.playlist import PlaylistSong


MAX_PICK_ATTEMPTS = 200
CHOICES_PER_ROUND = 4
MIN_GUESS_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]")
# шум в названиях клипов, который не должен влиять на угадывание
NOISE_SUBSTRINGS = ("officialvideo", "lyrics", "mv")


def normalize_title(text: str) -> str:
    s = _NON_ALNUM.sub("", text.lower())
    for noise in NOISE_SUBSTRINGS:
        s = s.replace(noise, "")
    return s


def is_correct_guess(guess: str, answer: str) -> bool:
    """Свободный ввод: ответ засчитан, если нормализованная догадка — подстрока названия.

    Сравнение несимметричное: "bohemian" угадывает "Bohemian Rhapsody (Official Video)",
    а слишком короткие догадки (< 3 символов после нормализации) не засчитываются.
    """
    norm_guess = normalize_title(guess)
    if len(norm_guess) < MIN_GUESS_LENGTH:
        return False
    return norm_guess in normalize_title(answer)


def pick_song_index(
    total: int,
    played: AbstractSet[int],
    rng: random.Random,
    *,
    max_attempts: int = MAX_PICK_ATTEMPTS,
) -> int:
    """Случайный индекс трека, по возможности ещё не игравшего.

    Пробуем до max_attempts раз, потом соглашаемся на повтор,
    чтобы маленький плейлист не подвесил игру.
    """
    if total <= 0:
        raise ValueError("playlist has no songs")

    idx = rng.randrange(total)
    attempts = 1
    while idx in played and attempts < max_attempts:
        idx = rng.randrange(total)
        attempts += 1
    return idx


def build_choices(
    songs: Sequence[PlaylistSong],
    correct_index: int,
    rng: random.Random,
    *,
    size: int = CHOICES_PER_ROUND,
) -> List[str]:
    """Варианты ответа: правильное название + (size-1) случайных чужих, перемешано."""
    correct_title = songs[correct_index].title

    # одинаковые названия в плейлисте бывают, правильный вариант должен быть ровно один
    others: List[str] = []
    seen = {correct_title}
    for i, song in enumerate(songs):
        if i == correct_index or song.title in seen:
            continue
        seen.add(song.title)
        others.append(song.title)

    distractors = rng.sample(others, min(size - 1, len(others)))
    options = [correct_title, *distractors]
    rng.shuffle(options)
    return options


def is_correct_choice(choice: str, correct_title: str) -> bool:
    return choice == correct_title
