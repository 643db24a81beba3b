"""Piece size selection."""

from __future__ import annotations

from ccmeta.utils.exceptions import ConfigurationError

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB

# Piece sizes must be whole multiples of the transfer block size
BLOCK_SIZE = 16 * KiB

# (minimum total size, piece size), largest first
PIECE_SIZE_STEPS: tuple[tuple[int, int], ...] = (
    (32 * GiB, 16 * MiB),
    (16 * GiB, 8 * MiB),
    (8 * GiB, 4 * MiB),
    (2 * GiB, 2 * MiB),
    (1 * GiB, 1 * MiB),
    (512 * MiB, 512 * KiB),
    (350 * MiB, 256 * KiB),
    (150 * MiB, 128 * KiB),
    (50 * MiB, 64 * KiB),
)
MIN_DEFAULT_PIECE_SIZE = 32 * KiB


def default_piece_size(total_length: int) -> int:
    """Piece size for an input of ``total_length`` bytes."""
    for threshold, piece_size in PIECE_SIZE_STEPS:
        if total_length >= threshold:
            return piece_size
    return MIN_DEFAULT_PIECE_SIZE


def validate_piece_size(piece_size: int) -> None:
    """Raise ``ConfigurationError`` unless ``piece_size`` is usable."""
    if (
        isinstance(piece_size, bool)
        or not isinstance(piece_size, int)
        or piece_size <= 0
        or piece_size % BLOCK_SIZE
    ):
        msg = (
            f"Piece size must be a positive multiple of {BLOCK_SIZE // KiB} KiB, "
            f"got {piece_size!r}"
        )
        raise ConfigurationError(msg, {"piece_size": piece_size})


def select_piece_size(total_length: int, override: int | None = None) -> int:
    """Choose the piece size for a build.

    An explicit ``override`` is used verbatim once validated; otherwise the
    size comes from :data:`PIECE_SIZE_STEPS`.

    Raises:
        ConfigurationError: invalid override, or nothing to hash.

    """
    if total_length <= 0:
        msg = "Input contains no data to hash"
        raise ConfigurationError(msg, {"total_length": total_length})
    if override is not None:
        validate_piece_size(override)
        return override
    return default_piece_size(total_length)


def piece_count(total_length: int, piece_size: int) -> int:
    """Number of pieces covering ``total_length`` bytes."""
    return -(-total_length // piece_size)


def last_piece_length(total_length: int, piece_size: int) -> int:
    """Length of the final, possibly short, piece."""
    count = piece_count(total_length, piece_size)
    if count == 0:
        return 0
    return total_length - piece_size * (count - 1)
