import re
import tiktoken

# Control tokens understood by the prompt templates and decode loop.
# Registered in reserved slots directly after the base vocabulary.
SPECIAL_TOKEN_STRINGS = {
    "bos": "<s>",
    "eos": "</s>",
    "end_of_turn": "<|end_of_turn|>",
}


class Tokenizer():
    """
    Text <-> token id conversion.

    Two kinds are supported:
        'gpt2'   tiktoken GPT-2 BPE (50257 base ids)
        'bytes'  one id per UTF-8 byte (256 base ids), no external vocab

    Special tokens are matched with a single compiled regex during encode and
    never produce text in ``token_bytes`` / ``decode``.
    """

    def __init__(self, kind='gpt2', encoding_name='gpt2'):
        self.token_kind = kind
        self.enc = None
        if kind == 'gpt2':
            self.enc = tiktoken.get_encoding(encoding_name)
            self.base_vocab_size = self.enc.n_vocab
        elif kind == 'bytes':
            self.base_vocab_size = 256
        else:
            raise ValueError(f"Unknown tokenizer kind: {kind}. Use 'gpt2' or 'bytes'.")

        self.special_token_encoder = {}  # str -> id
        self.special_token_decoder = {}  # id -> str
        self.special_tokens = {}         # name -> id
        self._special_token_pattern = None
        self._register_special_tokens()

    def _register_special_tokens(self):
        next_id = self.base_vocab_size
        for name, tok_str in SPECIAL_TOKEN_STRINGS.items():
            self.special_token_encoder[tok_str] = next_id
            self.special_token_decoder[next_id] = tok_str
            self.special_tokens[name] = next_id
            next_id += 1

        # Longest first so that a shorter token never shadows a longer one
        tokens_by_length = sorted(self.special_token_encoder.keys(), key=len, reverse=True)
        self._special_token_pattern = re.compile('|'.join(re.escape(t) for t in tokens_by_length))

    @property
    def vocab_size(self):
        return self.base_vocab_size + len(self.special_token_encoder)

    def encode(self, text):
        """Encode text to token IDs, replacing special token strings with their IDs."""
        result = []
        last_end = 0
        for match in self._special_token_pattern.finditer(text):
            if match.start() > last_end:
                result.extend(self.encode_ordinary(text[last_end:match.start()]))
            result.append(self.special_token_encoder[match.group()])
            last_end = match.end()
        if last_end < len(text):
            result.extend(self.encode_ordinary(text[last_end:]))
        return result

    def encode_ordinary(self, text):
        """Encode text without special token handling."""
        if self.token_kind == 'gpt2':
            return self.enc.encode_ordinary(text)
        return list(text.encode('utf-8'))

    def token_bytes(self, token_id):
        """Raw bytes of a single token. Special tokens yield b''."""
        if token_id in self.special_token_decoder:
            return b""
        if token_id < 0 or token_id >= self.base_vocab_size:
            raise ValueError(f"Token id out of range: {token_id}")
        if self.token_kind == 'gpt2':
            return self.enc.decode_single_token_bytes(token_id)
        return bytes([token_id])

    def decode(self, ids, skip_special_tokens=True):
        """Decode token IDs to text. Invalid UTF-8 is replaced."""
        chunks = []
        for token_id in ids:
            if token_id in self.special_token_decoder:
                if not skip_special_tokens:
                    chunks.append(self.special_token_decoder[token_id].encode('utf-8'))
                continue
            chunks.append(self.token_bytes(token_id))
        return b"".join(chunks).decode('utf-8', errors='replace')

    def token_to_id(self, token):
        """Look up a special token string. Returns None if not registered."""
        return self.special_token_encoder.get(token)

    def is_special(self, token_id):
        return token_id in self.special_token_decoder
