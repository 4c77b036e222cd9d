"""模型测试"""

from termfling.models import (
    Mode,
    ProcessExited,
    ProcessHandle,
    SurfaceInfo,
    WindowHandle,
)


class TestHandles:
    """句柄相等性"""

    def test_same_id_different_generation(self):
        assert WindowHandle("win-1", 1) != WindowHandle("win-1", 2)
        assert WindowHandle("win-1", 1) == WindowHandle("win-1", 1)

    def test_hashable(self):
        index = {WindowHandle("win-1", 1): "a"}
        assert index[WindowHandle("win-1", 1)] == "a"

    def test_exit_event_matches_handle(self):
        handle = ProcessHandle(1000, 3)
        assert ProcessExited(handle).process == ProcessHandle(1000, 3)
        assert ProcessExited(handle).exit_code is None


class TestSurfaceInfo:
    """SurfaceInfo 模型测试"""

    def _info(self, **kwargs):
        data = dict(name="a", mode=Mode.SPLIT, window_id="win-1", tab_id=None, pid=1000, is_open=True)
        data.update(kwargs)
        return SurfaceInfo(**data)

    def test_state(self):
        assert self._info().state == "open"
        assert self._info(is_open=False, has_content=True).state == "hidden"
        assert self._info(is_open=False, has_content=False).state == "closed"

    def test_to_dict(self):
        data = self._info(command="bash").to_dict()
        assert data["name"] == "a"
        assert data["mode"] == "split"
        assert data["state"] == "open"
        assert data["command"] == "bash"

    def test_to_dict_without_mode(self):
        data = self._info(mode=None, is_open=False).to_dict()
        assert data["mode"] is None
        assert data["state"] == "closed"

    def test_mode_is_str(self):
        assert Mode("tab") is Mode.TAB
        assert Mode.FLOATING == "floating"
