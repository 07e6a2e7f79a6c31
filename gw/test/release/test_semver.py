"""Tests for gw.release.semver module."""

from __future__ import annotations

import pytest

from gw.core.result import Err, Ok
from gw.git.commits import Commit, parse_header
from gw.release.semver import SemVer, infer_bump, next_version, parse_version


def _commit(message: str) -> Commit:
    return Commit(hash="h", message=message, author="a", timestamp="t", header=parse_header(message))


class TestParseVersion:
    def test_plain_and_prefixed(self) -> None:
        assert parse_version("1.2.3") == SemVer(1, 2, 3)
        assert parse_version("v1.2.3") == SemVer(1, 2, 3)

    def test_prerelease_and_build(self) -> None:
        assert parse_version("2.0.0-rc.1+build.5") == SemVer(2, 0, 0, "rc.1")

    @pytest.mark.parametrize("text", ["1.2", "01.2.3", "1.2.3.4", "latest", ""])
    def test_invalid(self, text: str) -> None:
        assert parse_version(text) is None


class TestNextVersion:
    @pytest.mark.parametrize(
        ("current", "bump", "expected"),
        [
            ("1.2.3", "patch", "1.2.4"),
            ("1.2.3", "minor", "1.3.0"),
            ("1.2.3", "major", "2.0.0"),
            ("0.0.0", "patch", "0.0.1"),
            ("1.0.0", "minor", "1.1.0"),
        ],
    )
    def test_strict_increment(self, current: str, bump: str, expected: str) -> None:
        assert next_version(current, bump) == Ok(expected)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("current", "bump", "expected"),
        [
            ("1.2.4-beta.1", "patch", "1.2.4"),
            ("1.3.0-rc.1", "minor", "1.3.0"),
            ("1.3.1-rc.1", "minor", "1.4.0"),
            ("2.0.0-alpha", "major", "2.0.0"),
        ],
    )
    def test_prerelease_promotion(self, current: str, bump: str, expected: str) -> None:
        assert next_version(current, bump) == Ok(expected)  # type: ignore[arg-type]

    def test_result_is_greater(self) -> None:
        for bump in ("patch", "minor", "major"):
            result = next_version("3.4.5", bump)  # type: ignore[arg-type]
            assert isinstance(result, Ok)
            parsed = parse_version(result.value)
            assert parsed is not None
            assert parsed.sort_key() > SemVer(3, 4, 5).sort_key()

    def test_deterministic(self) -> None:
        assert next_version("1.9.9", "minor") == next_version("1.9.9", "minor")

    def test_invalid_current(self) -> None:
        result = next_version("not-a-version", "patch")
        assert isinstance(result, Err)
        assert result.error.kind == "version_invalid"


class TestInferBump:
    def test_scenario_a_minor(self) -> None:
        commits = [_commit("feat: add x"), _commit("fix: correct y"), _commit("chore: bump deps")]
        assert infer_bump(commits) == "minor"
        assert next_version("1.0.0", infer_bump(commits)) == Ok("1.1.0")

    def test_scenario_b_breaking_wins(self) -> None:
        commits = [_commit("fix: small"), _commit("feat(api)!: remove legacy endpoint"), _commit("feat: more")]
        assert infer_bump(commits) == "major"

    def test_patch_by_default(self) -> None:
        assert infer_bump([_commit("fix: a"), _commit("docs: b"), _commit("random text")]) == "patch"
        assert infer_bump([]) == "patch"
