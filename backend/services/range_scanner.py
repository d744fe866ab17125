"""Block window selection for log scans."""

from typing import Optional

from models.activity import BlockRange

DEFAULT_MAX_SPAN_FACTOR = 10


def compute_range(
    current_block: int,
    lookback: int,
    deploy_block: Optional[int] = None,
    max_span_factor: int = DEFAULT_MAX_SPAN_FACTOR,
) -> BlockRange:
    """Return the inclusive block window ending at ``current_block``.

    A known deployment block is used as the lower bound as long as it is not
    ahead of the chain head and lies within ``lookback * max_span_factor``
    blocks of it; otherwise the window is the last ``lookback`` blocks.
    """
    current_block = max(0, int(current_block))
    lookback = max(0, int(lookback))

    if deploy_block is not None:
        deploy_block = int(deploy_block)
        span = current_block - deploy_block
        if 0 <= deploy_block <= current_block and span <= lookback * max_span_factor:
            return BlockRange(from_block=deploy_block, to_block=current_block)

    return BlockRange(from_block=max(0, current_block - lookback), to_block=current_block)
