"""SRT adapter for SubtitleBlock records."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from subloom_core.ports.subtitles import (
    SubtitleFormatError,
    SubtitleFormatErrorCode,
    SubtitleFormatErrorDetails,
    SubtitleFormatErrorInfo,
)
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.primitives import SRT_TIME_MARKER

_RECORD_SEPARATOR = re.compile(r"\r?\n[ \t]*\r?\n")
_BOM = "\ufeff"


class SrtSubtitleFormat:
    """SRT parser and serializer.

    Records are separated by blank lines. A record needs an integer id, a time
    line containing ``-->``, and at least one text line; anything else is
    skipped.
    """

    def parse(self, content: str) -> list[SubtitleBlock]:
        """Parse SRT text into blocks ordered by number.

        Args:
            content: SRT document text.

        Returns:
            list[SubtitleBlock]: Parsed blocks.

        Raises:
            SubtitleFormatError: If two records share a block number.
        """
        blocks: dict[int, SubtitleBlock] = {}
        for record in _RECORD_SEPARATOR.split(content.lstrip(_BOM).strip()):
            block = _parse_record(record)
            if block is None:
                continue
            if block.number in blocks:
                raise SubtitleFormatError(
                    SubtitleFormatErrorInfo(
                        code=SubtitleFormatErrorCode.DUPLICATE_BLOCK,
                        message=f"Block {block.number} appears more than once",
                        details=SubtitleFormatErrorDetails(block_number=block.number),
                    )
                )
            blocks[block.number] = block
        return [blocks[number] for number in sorted(blocks)]

    def serialize(self, blocks: list[SubtitleBlock]) -> str:
        """Serialize blocks into SRT text.

        Args:
            blocks: Blocks to write, in output order.

        Returns:
            str: SRT document text.
        """
        return "".join(
            f"{block.number}\n{block.time}\n{block.text}\n\n" for block in blocks
        )


def _parse_record(record: str) -> SubtitleBlock | None:
    lines = [line.strip() for line in record.splitlines()]
    lines = [line for line in lines if line]
    if len(lines) < 3 or SRT_TIME_MARKER not in lines[1]:
        return None
    try:
        number = int(lines[0])
    except ValueError:
        return None
    if number < 0:
        return None
    return SubtitleBlock(number=number, time=lines[1], text="\n".join(lines[2:]))


def parse_srt_document(
    content: str, *, source: str = "<inline>"
) -> list[SubtitleBlock]:
    """Parse SRT text that must contain at least one block.

    Args:
        content: SRT document text.
        source: Label used in error details.

    Returns:
        list[SubtitleBlock]: Parsed blocks.

    Raises:
        SubtitleFormatError: If no valid block was found or numbers repeat.
    """
    try:
        blocks = SrtSubtitleFormat().parse(content)
    except SubtitleFormatError as exc:
        raise SubtitleFormatError(
            exc.info.model_copy(
                update={
                    "details": SubtitleFormatErrorDetails(
                        source=source,
                        block_number=exc.info.details.block_number
                        if exc.info.details is not None
                        else None,
                    )
                }
            )
        ) from exc
    if not blocks:
        raise SubtitleFormatError(
            SubtitleFormatErrorInfo(
                code=SubtitleFormatErrorCode.EMPTY_DOCUMENT,
                message="Document contains no subtitle blocks",
                details=SubtitleFormatErrorDetails(source=source),
            )
        )
    return blocks


async def load_srt(path: str | Path) -> list[SubtitleBlock]:
    """Load and parse an SRT file.

    Args:
        path: File path.

    Returns:
        list[SubtitleBlock]: Parsed blocks.

    Raises:
        SubtitleFormatError: If the file cannot be read or holds no blocks.
    """
    content = await asyncio.to_thread(_read_text_sync, Path(path))
    return parse_srt_document(content, source=str(path))


async def write_srt(path: str | Path, blocks: list[SubtitleBlock]) -> None:
    """Serialize blocks and write them to an SRT file.

    Args:
        path: Output file path.
        blocks: Blocks to write.

    Raises:
        SubtitleFormatError: If the file cannot be written.
    """
    content = SrtSubtitleFormat().serialize(blocks)
    await asyncio.to_thread(_write_text_sync, Path(path), content)


def _read_text_sync(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise SubtitleFormatError(
            SubtitleFormatErrorInfo(
                code=SubtitleFormatErrorCode.IO_ERROR,
                message=f"Failed to read subtitle file: {exc}",
                details=SubtitleFormatErrorDetails(source=str(path)),
            )
        ) from exc


def _write_text_sync(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise SubtitleFormatError(
            SubtitleFormatErrorInfo(
                code=SubtitleFormatErrorCode.IO_ERROR,
                message=f"Failed to write subtitle file: {exc}",
                details=SubtitleFormatErrorDetails(source=str(path)),
            )
        ) from exc
