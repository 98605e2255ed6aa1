"""
Knowledge base, ingestion, retrieval and pipeline tests against real
SQLite metadata, filesystem blobs and the numpy vector store.

Usage:
    python -m pytest tests/test_knowledge_store.py -v
"""

import pytest

from conftest import ScriptedLanguageModel
from core.errors import EngineError, MalformedRequestError, NotFoundError
from core.messages import AssistantMessage, SystemMessage, UserMessage
from core.rag import ChatPipeline, CompletionOptions, KnowledgeStore, Retriever


@pytest.fixture
def store(metadata, blobs, vectors, embedder):
    return KnowledgeStore(metadata, blobs, vectors, embedder)


class TestKnowledgeBases:

    def test_create_is_idempotent_by_name(self, store, vectors):
        kb, existed = store.create_kb("docs")
        again, existed_again = store.create_kb("docs")
        assert existed is False
        assert existed_again is True
        assert again.id == kb.id
        assert vectors.has_table(f"kb_{kb.id}")

    def test_empty_name_rejected(self, store):
        with pytest.raises(MalformedRequestError):
            store.create_kb("  ")

    def test_delete_drops_table(self, store, vectors):
        kb, _ = store.create_kb("docs")
        deleted = store.delete_kb(kb.id)
        assert deleted.name == "docs"
        assert not vectors.has_table(f"kb_{kb.id}")
        assert store.list_kbs() == []
        with pytest.raises(NotFoundError):
            store.delete_kb(kb.id)

    def test_new_kb_does_not_inherit_deleted_files(self, store, blobs, metadata):
        old, _ = store.create_kb("docs")
        row = store.upload_file(old.id, "secret.txt", b"private")
        store.delete_kb(old.id)
        assert metadata.get_file(old.id, row.id) is None
        assert not blobs.kb_dir(old.id).exists()

        new, _ = store.create_kb("other")
        assert new.id != old.id
        assert store.list_files(new.id) == []
        with pytest.raises(NotFoundError):
            store.ingest(new.id, row.id)


class TestFiles:

    def test_upload_and_list(self, store, blobs):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "a.txt", b"hello world")
        assert row.bytes == 11
        assert row.purpose == "embedding"
        assert [f.filename for f in store.list_files(kb.id)] == ["a.txt"]
        assert blobs.read(kb.id, "a.txt") == b"hello world"

    def test_reupload_replaces(self, store, blobs):
        kb, _ = store.create_kb("docs")
        first = store.upload_file(kb.id, "a.txt", b"one")
        second = store.upload_file(kb.id, "a.txt", b"second version")
        assert second.id == first.id
        assert len(store.list_files(kb.id)) == 1
        assert blobs.read(kb.id, "a.txt") == b"second version"

    def test_path_components_stripped(self, store):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "../../etc/passwd", b"x")
        assert row.filename == "passwd"

    def test_upload_to_unknown_kb(self, store):
        with pytest.raises(NotFoundError):
            store.upload_file(42, "a.txt", b"x")

    def test_delete_file_keeps_embeddings(self, store):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "a.txt", b"hello")
        store.ingest(kb.id, row.id)
        store.delete_file(kb.id, row.id)
        assert store.list_files(kb.id) == []
        assert len(store.list_embeddings(kb.id)) == 1
        with pytest.raises(NotFoundError):
            store.delete_file(kb.id, row.id)


class TestIngestion:

    def test_end_to_end_scenario(self, store):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "a.txt", b"hello world")
        store.ingest(kb.id, row.id)

        records = store.list_embeddings(kb.id)
        assert len(records) == 1
        assert records[0].filename == "a.txt"
        assert records[0].text == "hello world"
        assert len(records[0].vector) == 1024

    def test_reingest_adds_row(self, store):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "a.txt", b"hello")
        first = store.ingest(kb.id, row.id)
        second = store.ingest(kb.id, row.id)
        assert first.id != second.id
        assert len(store.list_embeddings(kb.id)) == 2

    def test_invalid_utf8_replaced(self, store):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "b.bin", b"ok\xff")
        assert store.ingest(kb.id, row.id).text == "ok\ufffd"

    def test_unknown_file(self, store):
        kb, _ = store.create_kb("docs")
        with pytest.raises(NotFoundError):
            store.ingest(kb.id, 999)

    def test_delete_embedding(self, store):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "a.txt", b"hello")
        record = store.ingest(kb.id, row.id)
        assert store.delete_embedding(kb.id, "missing") is False
        assert store.delete_embedding(kb.id, record.id) is True
        assert store.list_embeddings(kb.id) == []
        with pytest.raises(NotFoundError):
            store.delete_embedding(kb.id + 100, record.id)


class TestRetriever:

    def _seed(self, store):
        kb, _ = store.create_kb("docs")
        for name, text in [("a.txt", "the sky is blue"), ("b.txt", "grass is green in spring")]:
            row = store.upload_file(kb.id, name, text.encode())
            store.ingest(kb.id, row.id)
        return kb

    def test_augments_last_message(self, store, vectors, embedder):
        kb = self._seed(store)
        retriever = Retriever(vectors, embedder)
        messages = [SystemMessage("be brief"), UserMessage("grass is green in spring")]
        out = retriever.augment(kb.id, messages)
        assert out[0] == messages[0]
        assert out[1].content == (
            "grass is green in spring answer question use the following information: grass is green in spring"
        )
        assert messages[1].content == "grass is green in spring"

    def test_missing_table(self, store, vectors, embedder):
        with pytest.raises(NotFoundError):
            Retriever(vectors, embedder).augment(5, [UserMessage("q")])

    def test_empty_table(self, store, vectors, embedder):
        kb, _ = store.create_kb("empty")
        with pytest.raises(NotFoundError):
            Retriever(vectors, embedder).augment(kb.id, [UserMessage("q")])

    def test_malformed_input_checked_before_store(self, vectors, embedder):
        retriever = Retriever(vectors, embedder)
        with pytest.raises(MalformedRequestError):
            retriever.augment(1, [])
        with pytest.raises(MalformedRequestError):
            retriever.augment(1, [UserMessage("q"), AssistantMessage(None)])
        assert embedder.embedded == []


class TestChatPipeline:

    def test_complete_with_stop_and_usage(self):
        model = ScriptedLanguageModel.from_text("answer. END junk")
        pipeline = ChatPipeline(model)
        result = pipeline.complete([UserMessage("q")], CompletionOptions(temperature=0, stop=[" END"]))
        assert result.text == "answer."
        assert result.finish_reason == "stop"
        assert result.prompt_tokens == len(model.tokenizer.encode("<s><|USER|>q"))

    def test_length_finish_reason(self):
        pipeline = ChatPipeline(ScriptedLanguageModel.from_text("abcdef"))
        result = pipeline.complete([UserMessage("q")], CompletionOptions(temperature=0, max_tokens=3))
        assert result.text == "abc"
        assert result.finish_reason == "length"
        assert result.completion_tokens == 3

    def test_kb_scoped_prompt_contains_context(self, store, vectors, embedder):
        kb, _ = store.create_kb("docs")
        row = store.upload_file(kb.id, "a.txt", b"hello world")
        store.ingest(kb.id, row.id)

        model = ScriptedLanguageModel.from_text("ok")
        pipeline = ChatPipeline(model, Retriever(vectors, embedder))
        pipeline.complete([UserMessage("hi")], CompletionOptions(temperature=0), kb_id=kb.id)
        assert model.prompts() == ["<|USER|>hi answer question use the following information: hello world"]

    def test_validation_happens_before_model(self):
        model = ScriptedLanguageModel.from_text("x")
        pipeline = ChatPipeline(model)
        with pytest.raises(MalformedRequestError):
            pipeline.complete([], CompletionOptions())
        with pytest.raises(MalformedRequestError):
            pipeline.complete([UserMessage("q")], CompletionOptions(temperature=-1))
        assert model.calls == []

    def test_missing_model(self):
        with pytest.raises(EngineError):
            ChatPipeline(None).complete([UserMessage("q")], CompletionOptions())

    def test_stream_ends_silently_on_failure(self):
        model = ScriptedLanguageModel.from_text("abcdef", fail_at=3)
        gate = ChatPipeline(model).stream([UserMessage("q")], CompletionOptions(temperature=0))
        assert "".join(gate) == "abc"
