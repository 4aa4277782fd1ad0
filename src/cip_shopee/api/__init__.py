"""HTTP API package for the CIP Shopee webhook service."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from fastapi import FastAPI


def create_app(*args, **kwargs) -> FastAPI:
    """Lazy import of create_app to avoid circular imports."""
    from cip_shopee.api.main import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = ["create_app"]
