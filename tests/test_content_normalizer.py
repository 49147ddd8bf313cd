from manuscript_import.core.content_normalizer import ContentNormalizer, clean_inlines, normalize_html
from manuscript_import.models.document import (
    BulletList,
    HardBreak,
    Heading,
    Image,
    OrderedList,
    Paragraph,
    Table,
    Text,
    count_words,
)


def test_word_count_ignores_whitespace_width() -> None:
    assert count_words(normalize_html("<p>  Hello   world  </p>")) == 2
    assert count_words(normalize_html("<p>Hello world</p>")) == 2


def test_word_split_by_formatting_counts_once() -> None:
    assert count_words(normalize_html("<p><b>Chap</b>ter one</p>")) == 2
    assert count_words(normalize_html("<h1>Tw<i>o</i></h1><p>a<br/>b</p>")) == 3


def test_unknown_tags_are_unwrapped_not_dropped() -> None:
    tree = normalize_html("<div><p>A</p><span>B</span></div>")
    assert [t.text for t in tree.text_nodes()] == ["A", "B"]
    assert all(isinstance(block, Paragraph) for block in tree.content)


def test_custom_element_with_blocks_is_unwrapped() -> None:
    tree = normalize_html("<x-scene><p>One</p><p>Two</p></x-scene>")
    assert [b.plain_text for b in tree.content] == ["One", "Two"]


def test_headings_deeper_than_three_are_clamped() -> None:
    tree = normalize_html("<h1>Top</h1><h5>Deep</h5>")
    levels = [b.level for b in tree.content if isinstance(b, Heading)]
    assert levels == [1, 3]


def test_marks_are_applied_to_enclosed_text() -> None:
    tree = normalize_html('<p><b>bold <i>both</i></b> plain <a href="https://x.test">link</a></p>')
    texts = list(tree.text_nodes())
    assert [t.text for t in texts] == ["bold ", "both", " plain ", "link"]
    assert texts[0].has_mark("bold") and not texts[0].has_mark("italic")
    assert texts[1].has_mark("bold") and texts[1].has_mark("italic")
    assert texts[2].marks == []
    assert texts[3].marks[0].href == "https://x.test"


def test_unclosed_tags_are_recovered() -> None:
    tree = normalize_html("<p>one<p>two <b>three")
    assert [b.plain_text for b in tree.content] == ["one", "two three"]


def test_whitespace_between_blocks_is_discarded() -> None:
    tree = normalize_html("<p>A</p>\n    \n<p>B</p>")
    assert len(tree.content) == 2


def test_script_and_style_are_dropped() -> None:
    tree = normalize_html("<style>p {}</style><p>Kept</p><script>alert(1)</script>")
    assert tree.plain_text == "Kept"


def test_text_is_nfc_normalized() -> None:
    tree = normalize_html("<p>Cafe\u0301</p>")
    assert tree.plain_text == "Caf\u00e9"


def test_lists_keep_items_and_start() -> None:
    tree = normalize_html('<ul><li>a</li><li>b</li></ul><ol start="3"><li>c</li></ol>')
    bullet, ordered = tree.content
    assert isinstance(bullet, BulletList)
    assert [item.plain_text for item in bullet.content] == ["a", "b"]
    assert isinstance(ordered, OrderedList)
    assert ordered.start == 3


def test_table_rows_and_header_cells() -> None:
    tree = normalize_html("<table><tr><th>H</th><th></th></tr><tr><td>c</td><td>d</td></tr></table>")
    (table,) = tree.content
    assert isinstance(table, Table)
    assert len(table.content) == 2
    header = table.content[0].content
    assert header[0].is_header
    assert header[1].content == [Paragraph()]
    assert table.content[1].content[1].plain_text == "d"


def test_inline_image_splits_paragraph() -> None:
    tree = normalize_html('<p>before<img src="pic.png" alt="A picture">after</p>')
    assert [b.type for b in tree.content] == ["paragraph", "image", "paragraph"]
    image = tree.content[1]
    assert isinstance(image, Image)
    assert image.alt == "A picture"


def test_br_becomes_hard_break() -> None:
    tree = normalize_html("<p>line one<br>line two<br></p>")
    (paragraph,) = tree.content
    assert [n.type for n in paragraph.content] == ["text", "hardBreak", "text"]


def test_empty_fragment_gives_empty_document() -> None:
    assert normalize_html("").is_empty
    assert normalize_html("<p>   </p>").is_empty


def test_heading_images_move_after_heading() -> None:
    tree = ContentNormalizer().normalize('<h1><img src="orn.png">Title</h1>')
    assert [b.type for b in tree.content] == ["heading", "image"]
    assert tree.content[0].title == "Title"


def test_clean_inlines_merges_and_trims() -> None:
    items = [Text(text=" a "), Text(text=" b"), HardBreak(), Text(text="  ")]
    assert clean_inlines(items) == [Text(text="a b")]
