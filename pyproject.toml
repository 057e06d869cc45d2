[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bbsboard"
version = "1.3.6"
description = "In-memory board, article and paging index, access privileges and game wallet for a terminal bulletin board system"
requires-python = ">=3.10"
dependencies = []
keywords = ["bbs", "bulletin-board", "forum", "trie", "paging"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: BBS",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bbsboard"]

[tool.pytest.ini_options]
addopts = "-ra"
