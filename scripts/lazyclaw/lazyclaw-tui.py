#!/usr/bin/env python3
"""Thin script entrypoint for the lazyclaw TUI."""

from __future__ import annotations

from claw_core.app import main


if __name__ == "__main__":
    raise SystemExit(main())
