"""Tests for recovering relevant files from error output."""

import pytest

from archline.core.config import ExtractConfig
from archline.deploy.context import ContextExtractor, extract_relevant_files


@pytest.fixture
def project(cdk_project):
    (cdk_project / "lib" / "api.ts").write_text("export const api = 1;\n")
    return cdk_project


def test_typescript_compile_error(project):
    """tsc diagnostics point at the source file."""
    error = "lib/stack.ts(12,5): error TS2304: Cannot find name 'Bucket'."

    files = extract_relevant_files(error, project)

    assert [f.path for f in files] == ["lib/stack.ts"]
    assert "InfraStack" in files[0].content


def test_stack_trace_paths_are_deduplicated(project):
    """A file mentioned by several patterns is returned once."""
    error = (
        "Error at /x/lib/stack.ts:\n"
        "    at new InfraStack (lib/stack.ts:10:15)\n"
        "    at Object.<anonymous> (bin/app.ts:4:1)\n"
    )

    files = extract_relevant_files(error, project)

    paths = [f.path for f in files]
    assert paths.count("lib/stack.ts") == 1
    assert "bin/app.ts" in paths


def test_absolute_path_inside_project(project):
    """Absolute paths under the project become relative."""
    error = f"Error: failed at {project}/lib/api.ts:3:7"

    files = extract_relevant_files(error, project)

    assert [f.path for f in files] == ["lib/api.ts"]


def test_node_modules_and_runtime_paths_ignored(project):
    """Dependency and runtime-internal frames are skipped."""
    error = (
        "    at Module._compile (node:internal/modules/cjs/loader:1105:14)\n"
        "    at node_modules/aws-cdk-lib/core/lib/stack.js:41:9\n"
        "    at internal/main/run_main_module.js:17:47\n"
        "lib/api.ts(2,1): error TS1005\n"
    )

    files = extract_relevant_files(error, project)

    assert [f.path for f in files] == ["lib/api.ts"]


def test_compiled_output_maps_to_source(project):
    """dist/*.js frames are mapped back to the .ts source."""
    error = "    at new Api (dist/lib/api.js:7:11)\n"

    files = extract_relevant_files(error, project)

    assert [f.path for f in files] == ["lib/api.ts"]


def test_missing_mentioned_file_is_skipped(project):
    """Mentioned files that do not exist are dropped."""
    error = "lib/missing.ts(1,1): error TS2307\nlib/api.ts(1,1): error"

    files = extract_relevant_files(error, project)

    assert [f.path for f in files] == ["lib/api.ts"]


def test_fallback_to_main_stack(project):
    """When nothing matches, the main stack file is used."""
    files = extract_relevant_files("Something went wrong", project)

    assert [f.path for f in files] == ["lib/stack.ts"]


def test_fallback_missing_gives_empty_list(tmp_path):
    """No matches and no fallback file yields no files."""
    assert extract_relevant_files("nothing useful", tmp_path) == []


def test_paths_escaping_project_ignored(project):
    """Relative paths that climb out of the root are not read."""
    (project.parent / "secret.ts").write_text("secret")
    error = "../secret.ts(1,1): error TS1\n"

    files = extract_relevant_files(error, project)

    assert all("secret" not in f.content for f in files)


def test_custom_fallback_file(project):
    """fallback_file is configurable."""
    config = ExtractConfig(fallback_file="bin/app.ts")

    files = extract_relevant_files("opaque failure", project, config)

    assert [f.path for f in files] == ["bin/app.ts"]


def test_normalize_outside_absolute_path(project, tmp_path_factory):
    """Absolute paths outside the project fall back to their name."""
    extractor = ContextExtractor(project)
    outside = tmp_path_factory.mktemp("elsewhere") / "stack.ts"

    assert extractor.normalize(str(outside)) == "stack.ts"
    assert extractor.normalize("../x.ts") is None
    assert extractor.normalize("./lib//api.ts") == "lib/api.ts"
