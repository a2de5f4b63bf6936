"""Tests for the listener command encoder."""

import pytest

from execution import commands
from execution.errors import InvalidCommand


class TestUpsert:
    def test_one_record_per_file_in_order(self):
        write = commands.upsert({"a.txt": "hi", "b.txt": "yo"})

        assert write.records == ("upsert a.txt hi", "upsert b.txt yo")
        assert write.payload == b"upsert a.txt hi\nupsert b.txt yo\n"

    def test_base64_content_passes_through(self):
        write = commands.upsert({"main.py": "cHJpbnQoJ2hpJyk="})
        assert write.records == ("upsert main.py cHJpbnQoJ2hpJyk=",)

    def test_nested_relative_path_allowed(self):
        write = commands.upsert({"pkg/util.py": "eA=="})
        assert write.records == ("upsert pkg/util.py eA==",)

    def test_shell_metacharacters_are_not_special(self):
        content = '"; rm -rf / #$(whoami)`id`'
        write = commands.upsert({"a.txt": content})
        assert write.payload == f"upsert a.txt {content}\n".encode()

    def test_empty_mapping_rejected(self):
        with pytest.raises(InvalidCommand):
            commands.upsert({})

    @pytest.mark.parametrize(
        "filename",
        ["", "my file.py", "/etc/passwd", "~/x.py", "../x.py", "a/../../x.py", "a\nb.py", "a\tb.py", ".", "a\x00b"],
    )
    def test_bad_filenames_rejected(self, filename):
        with pytest.raises(InvalidCommand):
            commands.upsert({filename: "eA=="})

    @pytest.mark.parametrize("content", ["line1\nline2", "trailing\r"])
    def test_content_with_line_breaks_rejected(self, content):
        with pytest.raises(InvalidCommand):
            commands.upsert({"a.txt": content})

    def test_non_text_content_rejected(self):
        with pytest.raises(InvalidCommand):
            commands.upsert({"a.txt": b"raw"})


class TestRunAndInput:
    def test_run(self):
        assert commands.run().records == ("run",)
        assert commands.run().payload == b"run\n"

    def test_input(self):
        assert commands.send_input("42").records == ("input 42",)

    def test_input_keeps_spaces(self):
        assert commands.send_input("hello world").records == ("input hello world",)

    @pytest.mark.parametrize("text", ["42\n", "42\r\n"])
    def test_input_single_trailing_newline_stripped(self, text):
        assert commands.send_input(text).records == ("input 42",)

    def test_empty_input_is_an_empty_line(self):
        assert commands.send_input("").payload == b"input \n"

    @pytest.mark.parametrize("text", ["1\n2", "1\r2", "42\n\n"])
    def test_multiline_input_rejected(self, text):
        with pytest.raises(InvalidCommand):
            commands.send_input(text)


class TestControlFileContract:
    def test_append_command_appends_and_quotes_path(self):
        assert commands.append_command("/commandListener/commands.txt") == [
            "sh",
            "-c",
            "cat >> /commandListener/commands.txt",
        ]
        assert commands.append_command("/odd dir/commands.txt")[2] == "cat >> '/odd dir/commands.txt'"

    def test_decode_records(self):
        assert commands.decode_record("run\n") == commands.CommandRecord(verb="run")
        assert commands.decode_record("input hello world") == commands.CommandRecord(
            verb="input", payload="hello world"
        )
        assert commands.decode_record("upsert a.txt aGk gap") == commands.CommandRecord(
            verb="upsert", filename="a.txt", payload="aGk gap"
        )

    def test_decode_encoded_upsert(self):
        line = commands.upsert({"main.py": "cHJpbnQoMSk="}).records[0]
        record = commands.decode_record(line)
        assert (record.filename, record.payload) == ("main.py", "cHJpbnQoMSk=")

    @pytest.mark.parametrize("line", ["", "upsert", "upsert a.txt", "runs", "delete a.txt"])
    def test_decode_malformed(self, line):
        with pytest.raises(InvalidCommand):
            commands.decode_record(line)
