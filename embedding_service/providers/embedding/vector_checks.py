"""Shape checks applied to vectors returned by an embedding endpoint.

A 200 response is not proof of usable output: some servers answer an
unloaded or misconfigured model with empty or ragged vectors.  Catching
that here keeps the failure attributed to the embedding provider instead
of surfacing later as an index write or search error.
"""

from __future__ import annotations

from embedding_service.utils.errors import EmptyResultError


def check_vector_shapes(
    vectors: list[list[float]],
    *,
    model: str,
    provider_name: str,
) -> None:
    """Raise :class:`EmptyResultError` unless every vector is non-empty and equal in length."""
    lengths = {len(vector) for vector in vectors}
    if 0 in lengths:
        raise EmptyResultError(
            message=f"Model '{model}' returned an empty vector",
            provider_name=provider_name,
        )
    if len(lengths) > 1:
        raise EmptyResultError(
            message=(
                f"Model '{model}' returned vectors of differing lengths "
                f"{sorted(lengths)}"
            ),
            provider_name=provider_name,
        )
