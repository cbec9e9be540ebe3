from pathlib import Path

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeRunner:
    """
    Stand-in for utils.commands.run_command.

    Maps a command prefix (tuple) to (exit_code, stdout, stderr); unknown
    commands behave like a missing binary. Every call is recorded.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, cmd, timeout=None):
        self.calls.append(list(cmd))
        # Longest matching prefix wins
        for prefix in sorted(self.responses, key=len, reverse=True):
            if tuple(cmd[:len(prefix)]) == prefix:
                return self.responses[prefix]
        return -1, "", f"command not found: {cmd[0]}"
