from __future__ import annotations

from catalog_sync.engine.document import DocumentWriter, format_document


def test_format_document_layout(make_item) -> None:
    item = make_item("A", "10.5")
    document = format_document(item, {"category": "Laptops", "specification": "16GB RAM"})
    lines = document.content.splitlines()
    assert lines[:4] == [
        "[TITLE] Product A",
        "[Price] 10.50",
        "[Category] Laptops",
        "[BRAND] Acme",
    ]
    assert lines[4] == ""
    assert lines[5] == "[CONTENT]"
    assert "[ID] A" in lines
    assert "[SKU] MPN-A" in lines
    assert "[IMAGE LINK] https://shop.example.com/img/A.jpg" in lines
    assert lines[-1] == "[Specification] 16GB RAM"


def test_format_document_without_enrichment(make_item) -> None:
    document = format_document(make_item("A"))
    assert "[Category]" not in document.content
    assert document.content.rstrip().endswith("[SKU] MPN-A")


def test_writer_paths_are_unique_per_identifier(tmp_path) -> None:
    writer = DocumentWriter(tmp_path)
    assert writer.path_for("A-1").name == "Prod_A-1.txt"
    slash = writer.path_for("a/b")
    underscore = writer.path_for("a_b")
    assert slash != underscore
    assert slash.parent == tmp_path


def test_writer_write_exists_discard(tmp_path, make_item) -> None:
    writer = DocumentWriter(tmp_path / "product")
    item = make_item("A")
    assert not writer.exists("A")
    path = writer.write(format_document(item))
    assert path.read_text(encoding="utf-8").startswith("[TITLE] Product A")
    assert writer.exists("A")
    writer.discard("A")
    assert not writer.exists("A")
    writer.discard("A")
