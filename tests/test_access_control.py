"""Allow-list tests."""

import pytest

from access_control import AllowList
from pool_errors import Unauthorized


class TestAllowList:
    def test_grant_and_revoke(self):
        acl = AllowList("owner", "inserter")
        assert not acl.is_authorized("owner")
        acl.authorize("owner", "b")
        acl.authorize("owner", "a")
        assert acl.members() == ["a", "b"]
        acl.require("a", "insert")
        acl.revoke("owner", "a")
        with pytest.raises(Unauthorized) as exc_info:
            acl.require("a", "insert")
        assert exc_info.value.caller == "a"

    def test_only_owner_manages(self):
        acl = AllowList("owner", "marker", members=["a"])
        with pytest.raises(Unauthorized):
            acl.authorize("a", "b")
        with pytest.raises(Unauthorized):
            acl.revoke("a", "a")

    def test_empty_addresses(self):
        with pytest.raises(ValueError):
            AllowList("", "inserter")
        with pytest.raises(ValueError):
            AllowList("owner", "inserter").authorize("owner", "")
