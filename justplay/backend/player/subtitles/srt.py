"""SubRip (``.srt``) cue parsing and re-emission on top of the ``srt`` library."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

import srt as srt_lib

from justplay.backend.common.logging import get_logger
from justplay.backend.player.exceptions import SubtitleFormatError, SubtitleReadError
from justplay.backend.player.subtitles.models import Cue

log = get_logger(__name__)

_FALLBACK_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


def decode_subtitle_bytes(raw: bytes) -> str:
    """Decode raw file content, honoring a UTF-8 byte-order mark."""

    for encoding in _FALLBACK_ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 maps every byte, the loop always returns before this point
    raise SubtitleFormatError("Subtitle content could not be decoded")


def _normalize(text: str) -> str:
    text = text.lstrip("﻿")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _blocks(text: str) -> Iterator[str]:
    block: list[str] = []
    for line in text.split("\n"):
        if not line.strip():
            if block:
                yield "\n".join(block) + "\n"
                block = []
            continue
        block.append(line)
    if block:
        yield "\n".join(block) + "\n"


def _seconds(value: timedelta) -> float:
    return round(value.total_seconds(), 3)


def _to_cue(subtitle: srt_lib.Subtitle, ordinal: int) -> Optional[Cue]:
    index = subtitle.index if subtitle.index is not None else ordinal
    start, end = _seconds(subtitle.start), _seconds(subtitle.end)
    if end < start:
        log.debug("srt_block_inverted_timing", extra={"index": index, "start": start, "end": end})
        return None
    if not subtitle.content.strip():
        return None
    return Cue(index=index, start=start, end=end, lines=tuple(subtitle.content.split("\n")))


def parse(raw: Union[bytes, str]) -> List[Cue]:
    """Parse SubRip content into cues ordered by start time.

    Each blank-line separated block goes through ``srt.parse`` on its own so a
    broken block cannot bleed into its neighbour. Blocks without a parseable
    timing line, with inverted timing, or with an empty body are skipped.
    Raises :class:`SubtitleFormatError` when nothing usable remains.
    """

    text = decode_subtitle_bytes(raw) if isinstance(raw, bytes) else raw
    blocks = list(_blocks(_normalize(text)))
    if not blocks:
        raise SubtitleFormatError("Subtitle file is empty")

    cues: list[Cue] = []
    skipped = 0
    for ordinal, block in enumerate(blocks):
        parsed = list(srt_lib.parse(block, ignore_errors=True))
        cue = _to_cue(parsed[0], ordinal) if len(parsed) == 1 else None
        if cue is None:
            skipped += 1
            continue
        cues.append(cue)

    if not cues:
        raise SubtitleFormatError("No well-formed subtitle cues found")
    if skipped:
        log.debug("srt_blocks_skipped", extra={"skipped": skipped, "parsed": len(cues)})

    cues.sort(key=lambda cue: cue.start)
    return cues


def parse_file(path: Union[str, Path]) -> List[Cue]:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SubtitleReadError(f"Unable to read subtitle file {path}: {exc}") from exc
    return parse(raw)


def format_srt(cues: Iterable[Cue]) -> str:
    """Serialize cues back into SubRip text, numbering them from 1."""

    subtitles = [
        srt_lib.Subtitle(
            index=number,
            start=timedelta(seconds=cue.start),
            end=timedelta(seconds=cue.end),
            content="\n".join(cue.lines),
        )
        for number, cue in enumerate(cues, start=1)
    ]
    return srt_lib.compose(subtitles, reindex=True, start_index=1)


__all__ = ["decode_subtitle_bytes", "format_srt", "parse", "parse_file"]
