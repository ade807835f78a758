"""Read access to the song corpus of an annotation target."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from semspine.core.errors import CorpusError, ValidationError
from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.text import sanitize_text, tokenize
from semspine.core.timestamps import generate_ulid, to_iso8601, utc_now


@dataclass(frozen=True)
class Song:
    id: str
    target_id: str
    title: str
    lyrics: str | None
    position: int = 0


@dataclass(frozen=True)
class TokenizedSong:
    song: Song
    tokens: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.tokens)


@dataclass(frozen=True)
class Corpus:
    """A target's songs in stable order, already tokenized."""

    target_id: str
    songs: tuple[TokenizedSong, ...]

    @property
    def total_songs(self) -> int:
        return len(self.songs)

    @property
    def total_words(self) -> int:
        return sum(len(s) for s in self.songs)

    def check_matches(self, total_songs: int, total_words: int) -> None:
        """Raise :class:`CorpusError` if the corpus no longer has the recorded shape."""
        if self.total_songs != total_songs or self.total_words != total_words:
            raise CorpusError(
                f"Corpus of target {self.target_id!r} changed during the run: "
                f"{self.total_songs} songs/{self.total_words} words, "
                f"expected {total_songs}/{total_words}"
            )


class CorpusRepository(BaseRepository):
    """Songs keyed by target, ordered by ``(position, title, id)``."""

    def add_song(
        self,
        target_id: str,
        title: str,
        lyrics: str | None,
        *,
        position: int = 0,
        song_id: str | None = None,
    ) -> Song:
        if not target_id or not title:
            raise ValidationError("target_id and title are required")
        song = Song(
            id=song_id or generate_ulid(),
            target_id=target_id,
            title=title,
            lyrics=sanitize_text(lyrics) or None,
            position=position,
        )
        self.insert(
            TABLES["songs"],
            {
                "id": song.id,
                "target_id": song.target_id,
                "title": song.title,
                "lyrics": song.lyrics,
                "position": song.position,
                "created_at": to_iso8601(utc_now()),
            },
        )
        self.commit()
        return song

    def list_songs(self, target_id: str) -> list[Song]:
        rows = self.query(
            f"""
            SELECT id, target_id, title, lyrics, position FROM {TABLES["songs"]}
            WHERE target_id = {self.ph(1)}
            ORDER BY position, title, id
            """,
            (target_id,),
        )
        return [self._song(row) for row in rows]

    def targets(self) -> list[dict[str, Any]]:
        return self.query(
            f"""
            SELECT target_id, COUNT(*) AS songs FROM {TABLES["songs"]}
            GROUP BY target_id ORDER BY target_id
            """
        )

    def load(self, target_id: str) -> Corpus:
        songs = self.list_songs(target_id)
        return Corpus(
            target_id=target_id,
            songs=tuple(TokenizedSong(s, tuple(tokenize(s.lyrics))) for s in songs),
        )

    @staticmethod
    def _song(row: dict[str, Any]) -> Song:
        return Song(
            id=row["id"],
            target_id=row["target_id"],
            title=row["title"],
            lyrics=row.get("lyrics"),
            position=int(row.get("position") or 0),
        )
