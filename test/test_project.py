from agm.config import AIToolConfig
from agm.project import ProjectDetector, supported_markers


def test_detects_tool_by_parent_folder(tmp_path):
    (tmp_path / ".claude").mkdir()
    (tmp_path / ".cursor").mkdir()

    projects = ProjectDetector(tmp_path).detect_all()

    assert [p.tool_type for p in projects] == ["cursor", "claude"]
    claude = projects[1]
    assert claude.skill_dir == tmp_path / ".claude" / "skills"
    assert claude.root == tmp_path


def test_first_matching_candidate_wins(tmp_path):
    (tmp_path / ".copilot").mkdir()
    (tmp_path / ".github").mkdir()

    projects = ProjectDetector(tmp_path).detect_all()

    assert len(projects) == 1
    assert projects[0].skill_dir == tmp_path / ".copilot" / "skills"


def test_nested_candidate(tmp_path):
    (tmp_path / ".gemini" / "antigravity" / "global_skills").mkdir(parents=True)
    projects = ProjectDetector(tmp_path).detect_all()
    assert [p.tool_type for p in projects] == ["antigravity"]


def test_nothing_detected(tmp_path):
    assert ProjectDetector(tmp_path).detect_all() == []


def test_configured_tools_replace_defaults(tmp_path, config):
    (tmp_path / ".claude").mkdir()
    (tmp_path / ".windsurf").mkdir()
    cfg = config.load_config()
    cfg.ai_tools = [AIToolConfig("windsurf", [".windsurf/skills"])]
    config.save_config(cfg)

    projects = ProjectDetector.from_config(config, tmp_path).detect_all()

    assert [p.tool_type for p in projects] == ["windsurf"]


def test_supported_markers():
    markers = supported_markers()
    assert markers[:3] == [".gemini/", ".agent/", ".copilot/"]
    assert ".claude/" in markers
    assert len(markers) == len(set(markers))
