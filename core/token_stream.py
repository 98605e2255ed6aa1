"""
Incremental detokenization.

BPE and byte-level tokens do not align with UTF-8 code points, so a
single token may carry half of a multi-byte character. TokenOutputStream
buffers incomplete sequences and only releases complete text.
"""

import codecs
from typing import Optional


class TokenOutputStream:

    def __init__(self, tokenizer):
        self.tokenizer = tokenizer
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def next_token(self, token_id: int) -> Optional[str]:
        """Feed one token; return newly completed text, or None if nothing is ready."""
        text = self._decoder.decode(self.tokenizer.token_bytes(token_id))
        return text or None

    def decode_rest(self) -> Optional[str]:
        """Flush buffered bytes; incomplete sequences become U+FFFD."""
        text = self._decoder.decode(b"", final=True)
        return text or None

    def clear(self) -> None:
        self._decoder.reset()
