from unittest.mock import Mock

import pytest


@pytest.fixture
def pull_request_files():
    return [
        Mock(filename="src/app.py", previous_filename=None, status="modified", patch="@@ -1 +1 @@\n-a\n+b"),
        Mock(filename="poetry.lock", previous_filename=None, status="modified", patch="@@ -1 +1 @@\n-1\n+2"),
        Mock(filename="logo.png", previous_filename=None, status="added", patch=None),
        Mock(filename="docs/new.md", previous_filename=None, status="added", patch="@@ -0,0 +1 @@\n+new"),
        Mock(filename="src/new_name.py", previous_filename="src/old_name.py", status="renamed", patch="@@ -1 +1 @@\n-x\n+y"),
    ]
