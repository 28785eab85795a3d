import unittest

from bs4 import BeautifulSoup

from src.classification.domain.metadata import extract_metadata, extract_price
from tests.fixtures.pages import CART_POPUP_PAGE


class PageMetadataTests(unittest.TestCase):
    def test_product_metadata_from_meta_tags(self):
        metadata = extract_metadata(CART_POPUP_PAGE, "product")

        self.assertEqual(metadata.title, "Handmade Walnut Desk Organizer")
        self.assertEqual(metadata.description, "A compact walnut organizer for pens, notebooks and chargers.")
        self.assertEqual(metadata.extra, {"price": "89.00", "availability": "in stock"})
        self.assertEqual(metadata.to_dict()["price"], "89.00")

    def test_price_fallbacks(self):
        span_html = '<div><span class="product-price">$24.50</span></div>'
        self.assertEqual(extract_price(BeautifulSoup(span_html, "lxml"), span_html), "$24.50")

        text_html = "<p>Only $19.99 today</p>"
        self.assertEqual(extract_price(BeautifulSoup(text_html, "lxml"), text_html), "19.99")

        self.assertIsNone(extract_price(BeautifulSoup("<p>free</p>", "lxml"), "<p>free</p>"))

    def test_availability_defaults_to_unknown(self):
        metadata = extract_metadata("<html><head><title>Lamp</title></head></html>", "product")
        self.assertEqual(metadata.extra["availability"], "unknown")
        self.assertIsNone(metadata.extra["price"])

    def test_social_and_video_fields(self):
        social = extract_metadata(
            '<head><meta name="author" content="Ada"><meta property="og:site_name" content="Mastodon"></head>',
            "social",
        )
        self.assertEqual(social.extra, {"author": "Ada", "platform": "Mastodon"})

        video = extract_metadata(
            '<head><meta property="video:duration" content="312"><meta property="og:image" content="thumb.jpg"></head>',
            "video",
        )
        self.assertEqual(video.extra, {"duration": "312", "channel": None})
        self.assertEqual(video.image, "thumb.jpg")

    def test_other_labels_have_no_extra_fields(self):
        metadata = extract_metadata("", "other")
        self.assertEqual(metadata.to_dict(), {"title": "", "description": "", "image": ""})


if __name__ == "__main__":
    unittest.main()
