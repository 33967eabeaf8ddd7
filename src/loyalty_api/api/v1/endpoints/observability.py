"""Observability endpoints for redemption counters."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from loyalty_api.observability.loyalty import get_loyalty_store


router = APIRouter(prefix="/observability", tags=["Observability"])


def _format_metric(name: str, description: str, value: int | float, labels: dict[str, str] | None = None) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} counter",
        f"{name}{label_fragment} {value}",
    ]


@router.get("/loyalty", summary="Redemption outcome counters")
async def get_loyalty_snapshot() -> dict[str, object]:
    return get_loyalty_store().snapshot().as_dict()


@router.get(
    "/prometheus",
    summary="Prometheus-formatted loyalty metrics",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_loyalty_store().snapshot()

    lines: list[str] = []
    for outcome, value in snapshot.redemptions.items():
        lines.extend(
            _format_metric(
                "loyalty_redemptions_total",
                "Redemption attempts grouped by outcome",
                value,
                labels={"outcome": outcome},
            )
        )
    lines.extend(
        _format_metric("loyalty_points_redeemed_total", "Points spent on successful redemptions", snapshot.points_redeemed)
    )

    return PlainTextResponse("\n".join(lines) + "\n")
