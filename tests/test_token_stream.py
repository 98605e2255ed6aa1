"""
Tokenizer and incremental detokenizer tests (byte-level kind, no downloads).
"""

import pytest

from core.token_stream import TokenOutputStream
from core.tokenizer import Tokenizer


class TestByteTokenizer:

    def setup_method(self):
        self.tok = Tokenizer(kind="bytes")

    def test_special_tokens_follow_base_vocab(self):
        assert self.tok.token_to_id("<s>") == 256
        assert self.tok.token_to_id("</s>") == 257
        assert self.tok.token_to_id("<|end_of_turn|>") == 258
        assert self.tok.vocab_size == 259

    def test_encode_matches_special_tokens(self):
        assert self.tok.encode("<s>hi</s>") == [256, ord("h"), ord("i"), 257]

    def test_decode_skips_special_tokens(self):
        assert self.tok.decode([256, ord("h"), ord("i"), 257]) == "hi"
        assert self.tok.decode([256, ord("h"), 257], skip_special_tokens=False) == "<s>h</s>"

    def test_unknown_token_string(self):
        assert self.tok.token_to_id("<unk>") is None

    def test_token_bytes_out_of_range(self):
        with pytest.raises(ValueError):
            self.tok.token_bytes(10_000)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Tokenizer(kind="sentencepiece")


class TestTokenOutputStream:

    def setup_method(self):
        self.tok = Tokenizer(kind="bytes")
        self.stream = TokenOutputStream(self.tok)

    def test_ascii_passes_through(self):
        assert self.stream.next_token(ord("a")) == "a"

    def test_multibyte_is_buffered(self):
        first, second = "é".encode("utf-8")
        assert self.stream.next_token(first) is None
        assert self.stream.next_token(second) == "é"
        assert self.stream.decode_rest() is None

    def test_special_token_produces_nothing(self):
        assert self.stream.next_token(256) is None

    def test_incomplete_sequence_flushed_as_replacement(self):
        self.stream.next_token("€".encode("utf-8")[0])
        assert self.stream.decode_rest() == "\ufffd"
