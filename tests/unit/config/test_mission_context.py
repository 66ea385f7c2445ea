"""
Unit tests for the mission context loader.
"""

from pathlib import Path

import pytest

from fswbuild.config.mission_context import (
    MISSION_CACHE_FILENAME,
    LogicalTarget,
    MissionCacheError,
    MissionContext,
    is_true,
    join_list,
    load_mission_context,
    parse_mission_cache,
    split_list,
    write_mission_cache,
)
from fswbuild.errors import ConfigurationError, MissingPathError


class TestListValues:
    """Test list escaping and splitting."""

    def test_split_plain_list(self):
        assert split_list("a;b;c") == ["a", "b", "c"]

    def test_split_keeps_escaped_separator(self):
        assert split_list("a;b\\;c") == ["a", "b;c"]

    def test_split_drops_empty_elements(self):
        assert split_list(";a;;b;") == ["a", "b"]

    def test_split_unset_value(self):
        assert split_list(None) == []
        assert split_list("") == []

    def test_join_escapes_separator(self):
        assert join_list(["x;y", "z"]) == "x\\;y;z"

    def test_join_escapes_backslash(self):
        assert join_list(["C:\\dir\\", "x"]) == "C:\\\\dir\\\\;x"

    def test_split_keeps_lone_backslash(self):
        assert split_list("C:\\dir;x") == ["C:\\dir", "x"]

    @pytest.mark.parametrize(
        "elements",
        [
            ["C:\\dir\\", "x"],
            ["a\\;b", "c"],
            ["\\", "\\\\", ";"],
            ["trailing\\\\", "semi;colon\\"],
        ],
    )
    def test_backslashes_survive_cache(self, tmp_path, elements):
        write_mission_cache(tmp_path, {"V": elements})
        assert load_mission_context(tmp_path).get_list("V") == elements

    def test_values_with_separator_survive_cache(self, tmp_path):
        """Writing then loading reproduces the mapping, separators included."""
        variables = {
            "PLAIN": "value",
            "WITH_SEPARATOR": "-DA=1\\;-DB=2",
            "LIST": ["one", "two;three"],
        }
        write_mission_cache(tmp_path, variables)
        mission = load_mission_context(tmp_path)

        assert mission.get("PLAIN") == "value"
        assert mission.get("WITH_SEPARATOR") == "-DA=1\\;-DB=2"
        assert mission.get_list("WITH_SEPARATOR") == ["-DA=1;-DB=2"]
        assert mission.get_list("LIST") == ["one", "two;three"]


class TestIsTrue:
    """Test build-system truthiness."""

    @pytest.mark.parametrize("value", ["1", "ON", "yes", "TRUE", "Y", "posix"])
    def test_true_values(self, value):
        assert is_true(value) is True

    @pytest.mark.parametrize("value", [None, "", "0", "OFF", "no", "false", "N", "IGNORE", "NOTFOUND", "LIB-NOTFOUND"])
    def test_false_values(self, value):
        assert is_true(value) is False


class TestParseMissionCache:
    """Test cache file parsing."""

    def test_parse_pairs_in_order(self):
        pairs = parse_mission_cache("MISSION_DEFS\n/opt/defs\nINSTALL_SUBDIR\ncf\n")
        assert pairs == [("MISSION_DEFS", "/opt/defs"), ("INSTALL_SUBDIR", "cf")]

    def test_parse_empty_file(self):
        assert parse_mission_cache("") == []

    def test_parse_allows_empty_value(self):
        assert parse_mission_cache("EMPTY\n\nNEXT\n1") == [("EMPTY", ""), ("NEXT", "1")]

    def test_parse_handles_crlf(self):
        assert parse_mission_cache("KEY\r\nvalue\r\n") == [("KEY", "value")]

    def test_odd_line_count_is_rejected(self):
        with pytest.raises(MissionCacheError, match="alternating"):
            parse_mission_cache("MISSION_DEFS\n/opt/defs\nDANGLING\n")

    def test_empty_key_is_rejected(self):
        with pytest.raises(MissionCacheError, match="line 3"):
            parse_mission_cache("A\n1\n\n2\n")

    def test_cache_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_mission_cache("ONLY_KEY")


class TestLoadMissionContext:
    """Test loading the cache from a mission binary directory."""

    def test_publishes_variables_and_manifest(self, tmp_path):
        (tmp_path / MISSION_CACHE_FILENAME).write_text("MISSION_DEFS\n/opt/defs\nINSTALL_SUBDIR\ncf\n")

        mission = load_mission_context(tmp_path)

        assert mission.get("MISSION_DEFS") == "/opt/defs"
        assert mission.get("INSTALL_SUBDIR") == "cf"
        assert mission.imported_vars == ("MISSION_DEFS", "INSTALL_SUBDIR")
        assert list(mission) == ["MISSION_DEFS", "INSTALL_SUBDIR"]
        assert mission.binary_dir == tmp_path

    def test_repeated_key_last_value_wins(self, tmp_path):
        (tmp_path / MISSION_CACHE_FILENAME).write_text("A\n1\nB\n2\nA\n3\n")

        mission = load_mission_context(tmp_path)

        assert mission.get("A") == "3"
        assert mission.imported_vars == ("A", "B")

    def test_missing_binary_dir(self, tmp_path):
        missing = tmp_path / "nope"
        with pytest.raises(MissingPathError) as exc_info:
            load_mission_context(missing)
        assert "not a valid directory" in str(exc_info.value)
        assert exc_info.value.path == missing

    def test_missing_cache_file(self, tmp_path):
        with pytest.raises(MissingPathError, match=MISSION_CACHE_FILENAME):
            load_mission_context(tmp_path)

    def test_write_rejects_newlines(self, tmp_path):
        with pytest.raises(MissionCacheError):
            write_mission_cache(tmp_path, {"BAD": "two\nlines"})

    def test_variables_are_read_only(self, tmp_path):
        mission = MissionContext.from_pairs(tmp_path, [("A", "1")])
        with pytest.raises(TypeError):
            mission.variables["A"] = "2"  # type: ignore[index]


class TestMissionContextAccessors:
    """Test typed accessors."""

    @pytest.fixture
    def mission(self, tmp_path):
        return MissionContext.from_pairs(
            tmp_path,
            [
                ("MISSION_DEFS", "/opt/defs"),
                ("ENABLE_UNIT_TESTS", "TRUE"),
                ("SIMULATION", ""),
                ("sample_app_MISSION_DIR", "/mission/apps/sample_app"),
            ],
        )

    def test_is_defined_distinguishes_empty_from_unset(self, mission):
        assert mission.is_defined("SIMULATION")
        assert "SIMULATION" in mission
        assert not mission.is_defined("MISSING")

    def test_get_bool(self, mission):
        assert mission.get_bool("ENABLE_UNIT_TESTS") is True
        assert mission.get_bool("SIMULATION") is False
        assert mission.get_bool("MISSING") is False

    def test_get_path(self, mission):
        assert mission.get_path("MISSION_DEFS") == Path("/opt/defs")
        assert mission.get_path("SIMULATION") is None

    def test_require_names_missing_variable(self, mission):
        with pytest.raises(ConfigurationError, match="MISSION_SOURCE_DIR"):
            mission.require("MISSION_SOURCE_DIR")

    def test_module_dir(self, mission):
        assert mission.module_dir("sample_app") == Path("/mission/apps/sample_app")
        with pytest.raises(ConfigurationError, match="ci_lab_MISSION_DIR"):
            mission.module_dir("ci_lab")


class TestLogicalTargets:
    """Test Logical Target resolution."""

    def test_explicit_target_settings(self, tmp_path):
        mission = MissionContext.from_pairs(
            tmp_path,
            [
                ("TGTSYS_cpu1-linux", "1;2"),
                ("TGT1_NAME", "cpu1"),
                ("TGT1_PLATFORM", "default;cpu1"),
                ("TGT1_APPLIST", "sample_app;ci_lab"),
                ("TGT2_NAME", "cpu2"),
                ("TGT2_PLATFORM", "default;cpu1"),
            ],
        )

        targets = mission.logical_targets("cpu1-linux")

        assert [t.name for t in targets] == ["cpu1", "cpu2"]
        assert targets[0].apps == ("sample_app", "ci_lab")
        assert targets[1].apps == ()
        # Same platform-config, same core library
        assert targets[0].core_library == targets[1].core_library == "cfe_core_default_cpu1"

    def test_defaults(self, tmp_path):
        mission = MissionContext.from_pairs(tmp_path, [("TGTSYS_ppc-vxworks", "3")])

        (target,) = mission.logical_targets("ppc-vxworks")

        assert target == LogicalTarget(target_id="3", name="cpu3", platform=("default", "cpu3"), apps=())
        assert target.core_library == "cfe_core_default_cpu3"
        assert target.executable == "core-cpu3"

    def test_unreferenced_architecture(self, tmp_path):
        mission = MissionContext.from_pairs(tmp_path, [])
        assert mission.logical_targets("cpu1-linux") == []
