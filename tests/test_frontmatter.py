import pytest

from docweave.core.errors import ExtractionError
from docweave.core.frontmatter import FrontmatterExtractor, split_frontmatter


def test_yaml_block():
    block = FrontmatterExtractor().extract("---\ntitle: Hello\ncount: 3\n---\n# Body\n")
    assert block.fmt == "yaml"
    assert block.metadata == {"title": "Hello", "count": 3}
    assert block.body == "# Body\n"


def test_toml_block():
    block = FrontmatterExtractor().extract('+++\ntitle = "Hello"\n+++\ntext')
    assert block.fmt == "toml"
    assert block.metadata == {"title": "Hello"}
    assert block.body == "text"


def test_bom_and_crlf():
    block = FrontmatterExtractor().extract("\ufeff---\r\nname: a\r\n---\r\nbody")
    assert block.metadata == {"name": "a"}
    assert block.body == "body"


def test_empty_block_is_empty_metadata():
    assert FrontmatterExtractor().extract("---\n---\nbody").metadata == {}


def test_missing_block_required():
    with pytest.raises(ExtractionError) as excinfo:
        FrontmatterExtractor().extract("plain text", path="a.md")
    assert excinfo.value.path == "a.md"


def test_missing_block_optional():
    block = FrontmatterExtractor(require_block=False).extract("plain text")
    assert block.metadata == {}
    assert block.body == "plain text"


def test_unclosed_block_is_not_a_block():
    assert split_frontmatter("---\ntitle: x\nno closing fence") is None


@pytest.mark.parametrize(
    "content",
    [
        "---\n- a\n- b\n---\n",
        "---\ntitle: [unclosed\n---\n",
        "+++\ntitle = \n+++\n",
    ],
)
def test_malformed_blocks(content):
    with pytest.raises(ExtractionError):
        FrontmatterExtractor().extract(content)
