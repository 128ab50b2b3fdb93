"""Tests for the corpus loading script's pure helpers."""

import json
import logging

import pytest
from ratemate.scripts.setup_db import CollectionLoadError, _parse_args, build_rows, load_collection, load_corpus, read_jsonl


def _write_jsonl(path, records):
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n\n", encoding="utf-8")


class RecordingStore:
    def __init__(self):
        self.added = {}

    def add_records(self, collection, rows):
        self.added.setdefault(collection, []).extend(rows)
        return len(rows)


def test_parse_args_flags(tmp_path):
    args = _parse_args(["--drop", "--source-dir", str(tmp_path)])

    assert args.drop is True
    assert args.drop_only is False
    assert args.source_dir == tmp_path


class TestReadJsonl:
    def test_skips_blank_lines(self, tmp_path):
        path = tmp_path / "posts.jsonl"
        _write_jsonl(path, [{"id": 1}, {"id": 2}])

        assert read_jsonl(path) == [{"id": 1}, {"id": 2}]

    def test_invalid_line_reports_position(self, tmp_path):
        path = tmp_path / "posts.jsonl"
        path.write_text('{"id": 1}\n{oops}\n', encoding="utf-8")

        with pytest.raises(ValueError, match="posts.jsonl:2"):
            read_jsonl(path)


class TestBuildRows:
    def test_projects_payload_columns(self):
        rows = build_rows("posts", [{"id": 1, "title": "T", "text": "body", "score": 99}], [[0.1, 0.2]])

        assert rows == [{"id": 1, "title": "T", "text": "body", "vector": [0.1, 0.2]}]

    def test_missing_text_columns_become_empty(self):
        rows = build_rows("comments", [{"post_id": 3}], [[0.5]])

        assert rows == [{"post_id": 3, "body": "", "vector": [0.5]}]


class TestLoadCollection:
    def test_missing_file_is_skipped(self, tmp_path):
        store = RecordingStore()

        assert load_collection(store, lambda texts: [], "posts", tmp_path, logging.getLogger("test")) == 0
        assert store.added == {}

    def test_text_is_normalised_like_queries(self, tmp_path):
        _write_jsonl(tmp_path / "attachments.jsonl", [{"post_id": 1, "extracted_text": "page\none\\ntwo\r\nthree"}])
        store = RecordingStore()
        seen = []

        def embed(texts):
            seen.extend(texts)
            return [[float(len(t))] for t in texts]

        added = load_collection(store, embed, "attachments", tmp_path, logging.getLogger("test"))

        assert added == 1
        assert seen == ["page one two three"]
        assert store.added["attachments"][0]["extracted_text"] == "page\none\\ntwo\r\nthree"

    def test_records_without_text_are_not_embedded(self, tmp_path):
        _write_jsonl(tmp_path / "attachments.jsonl", [
            {"post_id": 1, "extracted_text": "Loan Estimate"},
            {"post_id": 2, "extracted_text": None},
            {"post_id": 3, "extracted_text": "  \n "},
        ])
        store = RecordingStore()
        seen = []

        def embed(texts):
            assert all(texts)
            seen.extend(texts)
            return [[1.0] for _ in texts]

        added = load_collection(store, embed, "attachments", tmp_path, logging.getLogger("test"))

        assert added == 1
        assert seen == ["Loan Estimate"]
        assert [row["post_id"] for row in store.added["attachments"]] == [1]

    def test_failed_batch_reports_rows_already_written(self, tmp_path):
        _write_jsonl(tmp_path / "posts.jsonl", [{"id": n, "title": f"t{n}", "text": f"post {n}"} for n in range(100)])
        store = RecordingStore()
        calls = []

        def embed(texts):
            calls.append(len(texts))
            if len(calls) == 2:
                raise ConnectionError("quota exceeded")
            return [[0.0] for _ in texts]

        with pytest.raises(CollectionLoadError) as exc_info:
            load_collection(store, embed, "posts", tmp_path, logging.getLogger("test"))

        assert exc_info.value.added == 64
        assert len(store.added["posts"]) == 64
        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestLoadCorpus:
    def test_summary_counts_partial_collection(self, tmp_path):
        _write_jsonl(tmp_path / "posts.jsonl", [{"id": n, "title": "t", "text": f"post {n}"} for n in range(100)])
        _write_jsonl(tmp_path / "comments.jsonl", [{"post_id": 1, "body": "shop around"}])
        store = RecordingStore()
        calls = []

        def embed(texts):
            calls.append(texts)
            if len(calls) == 2:
                raise ConnectionError("quota exceeded")
            return [[0.0] for _ in texts]

        loaded = load_corpus(store, embed, tmp_path, logging.getLogger("test"))

        assert loaded == {"posts": 64, "comments": 1, "attachments": 0}
