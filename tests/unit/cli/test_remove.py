"""Tests for the avatar-rag remove command."""

from __future__ import annotations

from avatar_rag.cli.main import app


def test_remove_not_found(runner, ingested):
    result = runner.invoke(app, ["remove", "nope", "--owner", "alice"])
    assert result.exit_code == 0
    assert "Source not found" in result.output


def test_remove_with_yes(runner, ingested):
    result = runner.invoke(app, ["remove", ingested, "--owner", "alice", "--yes"])

    assert result.exit_code == 0, result.output
    assert "Removed: Gear notes" in result.output
    listing = runner.invoke(app, ["sources", "--owner", "alice"])
    assert "No sources ingested" in listing.output


def test_remove_cancelled(runner, ingested):
    result = runner.invoke(app, ["remove", ingested, "--owner", "alice"], input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    listing = runner.invoke(app, ["sources", "--owner", "alice"])
    assert ingested in listing.output


def test_remove_confirmed(runner, ingested):
    result = runner.invoke(app, ["remove", ingested, "--owner", "alice"], input="y\n")
    assert result.exit_code == 0
    assert "Removed" in result.output


def test_remove_is_owner_scoped(runner, ingested):
    result = runner.invoke(app, ["remove", ingested, "--owner", "bob", "--yes"])
    assert "Source not found" in result.output
    listing = runner.invoke(app, ["sources", "--owner", "alice"])
    assert ingested in listing.output
