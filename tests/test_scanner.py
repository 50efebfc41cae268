"""Tests for worker_inline.transform.scanner — worker idiom detection."""

from pathlib import Path

import pytest

from worker_inline.state.classifier import NamingConventionClassifier, ReferenceDrivenClassifier
from worker_inline.transform.scanner import (
    WORKER_PATTERN,
    ReferenceScanner,
    WorkerReference,
    inlined_spans,
)

OWNER = Path("/project/src/app.js")


class TestWorkerPattern:
    @pytest.mark.parametrize(
        "text",
        [
            "new Worker(new URL('./x.worker.js', import.meta.url))",
            'new Worker(new URL("./x.worker.js", import.meta.url))',
            "new   Worker (  new  URL ( './x.worker.js' ,import.meta.url ) )",
            "new Worker(\n  new URL(\n    './x.worker.js',\n    import.meta.url\n  )\n)",
        ],
    )
    def test_matches_idiom_variants(self, text):
        match = WORKER_PATTERN.search(text)
        assert match is not None
        assert match.group("path") == "./x.worker.js"
        assert match.group(0) == text

    @pytest.mark.parametrize(
        "text",
        [
            "new Worker('./x.worker.js')",
            "new Worker(new URL('./x.worker.js', location.href))",
            "new SharedWorker(new URL('./x.worker.js', import.meta.url))",
            "new Worker(new URL('./x.worker.js\", import.meta.url))",
            "new Worker(new URL(workerPath, import.meta.url))",
            "new Worker(new URL(`./x.worker.js`, import.meta.url))",
            "renew Worker(new URL('./x.worker.js', import.meta.url))",
        ],
    )
    def test_rejects_other_shapes(self, text):
        assert WORKER_PATTERN.search(text) is None


class TestReferenceScanner:
    def setup_method(self):
        self.scanner = ReferenceScanner()

    def test_single_reference(self):
        text = "const w = new Worker(new URL('./x.worker.js', import.meta.url));"
        refs = self.scanner.scan(OWNER, text)
        assert len(refs) == 1
        ref = refs[0]
        assert isinstance(ref, WorkerReference)
        assert ref.owner_path == OWNER
        assert ref.literal_path == "./x.worker.js"
        assert ref.matched_text == "new Worker(new URL('./x.worker.js', import.meta.url))"
        assert ref.quote == "'"

    def test_double_quote_recorded(self):
        refs = self.scanner.scan(OWNER, 'new Worker(new URL("../w.js", import.meta.url))')
        assert refs[0].quote == '"'
        assert refs[0].literal_path == "../w.js"

    def test_multiple_references_in_source_order(self):
        text = (
            "const b = new Worker(new URL('./b.js', import.meta.url));\n"
            "const a = new Worker(new URL('./a.js', import.meta.url));\n"
            "const b2 = new Worker(new URL('./b.js', import.meta.url));\n"
        )
        refs = self.scanner.scan(OWNER, text)
        assert [r.literal_path for r in refs] == ["./b.js", "./a.js", "./b.js"]

    def test_no_references(self):
        assert self.scanner.scan(OWNER, "console.log('hello');") == []

    def test_idiom_in_comment_still_matches(self):
        # Text matching cannot tell code from comments
        text = "// new Worker(new URL('./x.worker.js', import.meta.url))"
        assert len(self.scanner.scan(OWNER, text)) == 1

    def test_inline_construct_not_matched(self):
        text = "const worker = new Worker(url);\nURL.revokeObjectURL(url);"
        assert self.scanner.scan(OWNER, text) == []

    def test_stats(self):
        self.scanner.scan(OWNER, "new Worker(new URL('./a.js', import.meta.url))")
        self.scanner.scan(OWNER, "nothing here")
        stats = self.scanner.stats
        assert stats["files_scanned"] == 2
        assert stats["matches"] == 1
        assert stats["rejected"] == 0


class TestScannerWithClassifier:
    TEXT = (
        "new Worker(new URL('./x.worker.js', import.meta.url));\n"
        "new Worker(new URL('./helper.js', import.meta.url));\n"
    )

    def test_naming_strategy_keeps_marked_literals_only(self):
        scanner = ReferenceScanner(NamingConventionClassifier(markers=[".worker.js"]))
        refs = scanner.scan(OWNER, self.TEXT)
        assert [r.literal_path for r in refs] == ["./x.worker.js"]
        assert scanner.stats["rejected"] == 1

    def test_reference_strategy_keeps_everything(self):
        scanner = ReferenceScanner(ReferenceDrivenClassifier())
        refs = scanner.scan(OWNER, self.TEXT)
        assert [r.literal_path for r in refs] == ["./x.worker.js", "./helper.js"]


class TestInlinedCode:
    INNER = "new Worker(new URL('./y.worker.js', import.meta.url))"

    def test_offsets_recorded(self):
        text = f"a = 1;\nconst w = {self.INNER};"
        [ref] = ReferenceScanner().scan(OWNER, text)
        assert ref.start == text.index(self.INNER)

    def test_offset_not_part_of_equality(self):
        a = WorkerReference(OWNER, self.INNER, "./y.worker.js", start=3)
        b = WorkerReference(OWNER, self.INNER, "./y.worker.js")
        assert a == b

    def test_idiom_inside_inlined_code_skipped(self):
        text = (
            "const w = (function() {\n"
            f"    const __workerCode = `const x = {self.INNER}; y = \\`q\\`;`;\n"
            "  })();\n"
            f"const live = {self.INNER};\n"
        )
        scanner = ReferenceScanner()
        refs = scanner.scan(OWNER, text)
        assert len(refs) == 1
        assert refs[0].start == text.rindex(self.INNER)
        assert scanner.stats["inlined"] == 1

    def test_inlined_spans(self):
        text = "x; const __workerCode = `a\\`b`; y;"
        [(start, end)] = inlined_spans(text)
        assert text[start:end] == "const __workerCode = `a\\`b`"
