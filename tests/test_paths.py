import os

import pytest

from bunfs_dumper.errors import PathSafetyError
from bunfs_dumper.output.paths import (
    UsedPaths,
    candidate_path,
    ensure_inside,
    fallback_name,
    resolve_path,
    sanitize_module_path,
)


@pytest.mark.parametrize("virtual_path, expected", [
    ("B:/~BUN/root/src/index.js", "src/index.js"),
    ("b:/~bun/root/src/index.js", "src/index.js"),
    ("C:/~BUN/root/app.ts", "app.ts"),
    ("/$bunfs/root/app.js", "app.js"),
    ("/$bunfs/app.js", "app.js"),
    ("B:/~BUN/chunk-abc.js", "chunk-abc.js"),
    ("./lib/a.js", "lib/a.js"),
    (".//lib/a.js", "lib/a.js"),
    ("root/lib/a.js", "lib/a.js"),
    ("/root/lib/a.js", "lib/a.js"),
    ("plain/path.css", "plain/path.css"),
])
def test_strips_virtual_roots(virtual_path, expected):
    assert sanitize_module_path(virtual_path) == expected


def test_applies_every_matching_prefix():
    # "/$bunfs/" leaves "root/..." behind, which is stripped as well
    assert sanitize_module_path("/$bunfs/./root/x.js") == "x.js"
    assert sanitize_module_path("B:/~BUN/root/./root/x.js") == "x.js"


def test_replaces_illegal_characters():
    assert sanitize_module_path('a:b*c?d"e<f>g|h.js') == "a_b_c_d_e_f_g_h.js"


def test_normalizes_separators_and_carriage_returns():
    assert sanitize_module_path("dir\\sub\\file\r.js") == "dir/sub/file.js"


def test_strips_nul_bytes_and_leading_dots():
    assert sanitize_module_path("\x00..hidden/\x00a.js") == "hidden/a.js"


def test_drops_parent_segments():
    assert sanitize_module_path("../../etc/passwd") == "etc/passwd"
    assert sanitize_module_path("B:/~BUN/root/a/../../b.js") == "a/b.js"


def test_path_escape_resolves_inside():
    used = UsedPaths()
    assert resolve_path("../../etc/passwd", 1, 0, used) == os.path.join("etc", "passwd")


def test_collisions_get_numbered_suffix():
    used = UsedPaths()
    first = resolve_path("B:/~BUN/root/a/b.js", 1, 0, used)
    second = resolve_path("/$bunfs/root/a/b.js", 1, 1, used)
    third = resolve_path("a/b.js", 1, 2, used)

    assert first == os.path.join("a", "b.js")
    assert second == os.path.join("a", "b.2.js")
    assert third == os.path.join("a", "b.3.js")


def test_collisions_are_case_insensitive():
    used = UsedPaths()
    assert resolve_path("Readme.MD", 11, 0, used) == "Readme.MD"
    assert resolve_path("README.md", 11, 1, used) == "README.2.md"


def test_suffixed_name_is_reserved():
    used = UsedPaths()
    resolve_path("a.js", 1, 0, used)
    resolve_path("a.js", 1, 1, used)

    assert resolve_path("a.2.js", 1, 2, used) == "a.2.2.js"


def test_collision_without_extension():
    used = UsedPaths()
    resolve_path("LICENSE", 5, 0, used)
    assert resolve_path("LICENSE", 5, 1, used) == "LICENSE.2"


@pytest.mark.parametrize("loader, ext", [
    (0, ".jsx"), (1, ".js"), (2, ".ts"), (3, ".tsx"), (4, ".css"), (5, ".bin"),
    (6, ".json"), (8, ".toml"), (9, ".wasm"), (10, ".node"), (13, ".txt"),
    (14, ".sh"), (15, ".sqlite"), (17, ".html"), (18, ".yaml"), (200, ".bin"),
])
def test_fallback_name_by_loader(loader, ext):
    assert fallback_name(3, loader) == f"module-0003{ext}"


def test_empty_path_uses_fallback():
    used = UsedPaths()
    assert resolve_path("", 4, 12, used) == "module-0012.css"
    assert resolve_path("B:/~BUN/root/", 1, 13, used) == "module-0013.js"
    assert resolve_path("../..", 99, 14, used) == "module-0014.bin"


def test_reserved_names():
    used = UsedPaths(reserved=("metadata.json",))
    assert resolve_path("metadata.json", 6, 0, used) == "metadata.2.json"


def test_resolution_is_deterministic():
    paths = ["a.js", "A.js", "b/c.js", "", "b/c.js"]
    runs = []
    for _ in range(2):
        used = UsedPaths()
        runs.append([resolve_path(p, 1, i, used) for i, p in enumerate(paths)])
    assert runs[0] == runs[1]


def test_ensure_inside_accepts_nested(tmp_path):
    target = ensure_inside(tmp_path, os.path.join("a", "b.js"))
    assert target == tmp_path.resolve() / "a" / "b.js"


def test_ensure_inside_rejects_escape(tmp_path):
    with pytest.raises(PathSafetyError):
        ensure_inside(tmp_path / "out", os.path.join("..", "evil.js"))


def test_file_path_yields_to_reserved_directory():
    used = UsedPaths()
    used.reserve_parents(os.path.join("lib", "sub", "a.js"))

    assert used.claim("lib") == "lib.2"
    assert used.claim(os.path.join("lib", "sub")) == os.path.join("lib", "sub.2")
    assert used.claim(os.path.join("lib", "sub", "a.js")) == os.path.join("lib", "sub", "a.js")


def test_reserved_directories_are_case_insensitive():
    used = UsedPaths()
    used.reserve_parents(os.path.join("Assets", "logo.png"))

    assert used.claim("assets") == "assets.2"


def test_candidate_path_does_not_claim():
    used = UsedPaths()
    assert candidate_path("B:/~BUN/root/a/b.js", 1, 0) == os.path.join("a", "b.js")
    assert candidate_path("", 2, 7) == "module-0007.ts"
    assert resolve_path("B:/~BUN/root/a/b.js", 1, 0, used) == os.path.join("a", "b.js")
