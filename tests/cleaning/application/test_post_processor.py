import unittest
from unittest.mock import patch

from src.cleaning.application.post_processor import (
    STEP_CRUFT,
    STEP_FINAL,
    STEP_FORMATTING,
    STEP_MARKDOWN,
    PostProcessor,
    PostProcessorOptions,
)
from tests.fixtures.pages import ARTICLE_BODY


class MarkdownConversionTests(unittest.TestCase):
    def setUp(self):
        self.processor = PostProcessor()

    def test_article_body_becomes_markdown(self):
        result = self.processor.process(ARTICLE_BODY, "https://example.com/a")

        self.assertTrue(result.success)
        self.assertEqual(result.steps, (STEP_CRUFT, STEP_FORMATTING, STEP_MARKDOWN, STEP_FINAL))
        self.assertTrue(result.text.startswith("# Handmade Walnut Desk Organizer\n\nOur walnut desk organizer"))
        self.assertIn("\n\n## Why we built it\n\n", result.text)
        self.assertIn("[care guide](https://example.com/care)", result.text)
        self.assertIn("**a monthly coat of beeswax**", result.text)
        self.assertIn("- Solid reclaimed walnut with dovetail joints\n- Felt pads", result.text)
        self.assertNotIn("<", result.text)
        self.assertEqual(result.original_length, len(ARTICLE_BODY))
        self.assertEqual(result.final_length, len(result.text))

    def test_first_h2_promoted_when_there_is_no_h1(self):
        result = self.processor.process("<h2>Main title</h2><p>Body text here.</p><h2>Second</h2>")
        self.assertEqual(result.text, "# Main title\n\nBody text here.\n\n## Second")

    def test_lists_tables_quotes_and_code(self):
        html = """
        <ul><li>One<ul><li>Sub</li></ul></li><li>Two</li></ul>
        <ol><li>First</li><li>Second</li></ol>
        <table>
          <tr><th>Size</th><th>Price</th></tr>
          <tr><td>Small</td><td>$10</td></tr>
        </table>
        <blockquote><p>Quoted words</p></blockquote>
        <pre>x = 1
y = 2</pre>
        <hr>
        <p>Some <em>soft</em> emphasis and <code>inline()</code> code.</p>
        """
        text = self.processor.process(html).text

        self.assertIn("- One\n  - Sub\n- Two", text)
        self.assertIn("1. First\n2. Second", text)
        self.assertIn("| Size  | Price |\n| ----- | ----- |\n| Small | $10   |", text)
        self.assertIn("> Quoted words", text)
        self.assertIn("```\nx = 1\ny = 2\n```", text)
        self.assertIn("\n\n---\n\n", text)
        self.assertIn("Some *soft* emphasis and `inline()` code.", text)

    def test_tables_flattened_when_not_preserved(self):
        processor = PostProcessor(PostProcessorOptions(preserve_tables=False))
        text = processor.process("<table><tr><td>a</td><td>b</td></tr><tr><td>c</td><td>d</td></tr></table>").text
        self.assertEqual(text, "a b\nc d")


class CruftAndFormattingTests(unittest.TestCase):
    def test_tracking_images_empty_links_and_ad_captions_removed(self):
        html = """
        <p>Intro text for the page.<img src="https://cdn.example/spacer.gif" width="1" height="1"></p>
        <img src="https://analytics.example/t.gif" alt="">
        <a href="/nowhere"></a>
        <figure><img src="photo.png"><figcaption>Advertisement</figcaption></figure>
        <div> | . </div>
        <p>Closing words.</p>
        """
        processor = PostProcessor(PostProcessorOptions(convert_to_markdown=False))
        result = processor.process(html)

        self.assertNotIn("spacer.gif", result.text)
        self.assertNotIn("analytics.example", result.text)
        self.assertNotIn("/nowhere", result.text)
        self.assertNotIn("Advertisement", result.text)
        self.assertNotIn(" | . ", result.text)
        self.assertIn("photo.png", result.text)
        self.assertIn("Closing words.", result.text)
        self.assertNotIn(STEP_MARKDOWN, result.steps)

    def test_nested_bold_and_empty_formatting_tags(self):
        result = PostProcessor().process("<p><strong>very <b>bold</b> claim</strong> and <em> </em>rest of it</p>")
        self.assertEqual(result.text, "**very bold claim** and rest of it")

    def test_short_paragraph_filter_keeps_structure(self):
        processor = PostProcessor(PostProcessorOptions(remove_short_paragraphs=True, min_paragraph_length=20))
        html = "<h1>Title</h1><p>Tiny.</p><ul><li>one</li></ul><p>This paragraph is comfortably long enough.</p>"
        self.assertEqual(
            processor.process(html).text,
            "# Title\n\n- one\n\nThis paragraph is comfortably long enough.",
        )

    def test_entities_and_blank_lines_normalized(self):
        text = PostProcessor().process("<p>Fish &amp; chips&nbsp;today</p><p><br></p><p>Next</p>").text
        self.assertEqual(text, "Fish & chips today\n\nNext")


class PostProcessorFailureTests(unittest.TestCase):
    def test_failure_returns_original_content(self):
        with patch("src.cleaning.application.post_processor.BeautifulSoup", side_effect=RuntimeError("bad markup")):
            result = PostProcessor().process("<p>raw</p>", "https://example.com/")

        self.assertFalse(result.success)
        self.assertEqual(result.text, "<p>raw</p>")
        self.assertEqual(result.error, "bad markup")
        self.assertEqual(result.steps, ())

    def test_empty_input(self):
        result = PostProcessor().process("")
        self.assertTrue(result.success)
        self.assertEqual(result.text, "")


if __name__ == "__main__":
    unittest.main()
