"""
tests/test_listing_parser.py

Listing-page extraction: names, prices, discounts, images, availability,
and next-page probing.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from conftest import BASE_URL, listing_page, product_card

from bulkfetch.domain.catalog import Availability
from bulkfetch.scraping.parsing.listing import ListingPageParser, classify_stock_text


def _parser() -> ListingPageParser:
    return ListingPageParser(base_url=BASE_URL)


def _parse(html: str, page: int = 1):
    return _parser().parse_products(BeautifulSoup(html, "html.parser"), brand_name="Nike", page=page)


class TestNames:
    def test_title_attribute_is_preferred(self) -> None:
        html = '<a href="/product/a-1" title="Air Zoom">Air Zoom\nNew season</a>'

        products = _parse(html)

        assert [product.name for product in products] == ["Air Zoom"]

    def test_template_title_falls_back_to_first_text_line(self) -> None:
        html = '<a href="/product/a-1" title="{{ item.name }}"><span>Pegasus 40</span><span>Men</span></a>'

        products = _parse(html)

        assert products[0].name == "Pegasus 40"

    def test_anchor_with_only_template_text_is_skipped(self) -> None:
        html = '<a href="/product/a-1">{{ product.title }}</a><a href="/product/b-2">Real</a>'

        products = _parse(html)

        assert [product.name for product in products] == ["Real"]

    def test_duplicate_links_produce_one_product(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="50", image="/img/shoe.jpg"))

        products = _parse(html)

        assert len(products) == 1
        assert products[0].source_url == f"{BASE_URL}/product/shoe-1"


class TestPrices:
    def test_discounted_card_yields_current_and_original(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="89.99", old_price="120"))

        product = _parse(html)[0]

        assert product.current_price == 89.99
        assert product.original_price == 120.0
        assert product.is_discounted is True
        assert product.currency == "AZN"

    def test_single_price_is_not_discounted(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="75"))

        product = _parse(html)[0]

        assert product.current_price == 75.0
        assert product.original_price == 75.0
        assert product.is_discounted is False

    def test_brand_price_class_wins_over_highlight(self) -> None:
        html = (
            '<div class="col"><a href="/product/x-1">X</a>'
            '<span class="text-primary">99 AZN</span><span class="brand-price">79 AZN</span></div>'
        )

        assert _parse(html)[0].current_price == 79.0

    def test_regex_fallback_reads_comma_decimal(self) -> None:
        html = '<div class="col"><a href="/product/x-1">X</a><p>Qiymət: 45,50 AZN</p></div>'

        assert _parse(html)[0].current_price == 45.5

    def test_missing_price_is_none(self) -> None:
        html = '<div><a href="/product/x-1">X</a></div>'

        product = _parse(html)[0]

        assert product.current_price is None
        assert product.original_price is None
        assert product.is_discounted is False


class TestImages:
    def test_image_from_sibling_link_is_used(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="50", image="/img/shoe.jpg"))

        assert _parse(html)[0].main_image == f"{BASE_URL}/img/shoe.jpg"

    def test_loader_placeholder_falls_back_to_lazy_source(self) -> None:
        html = (
            '<a href="/product/x-1" title="X">'
            '<img src="/assets/product-loader.svg" data-src="https://cdn.test/x.jpg"></a>'
        )

        assert _parse(html)[0].main_image == "https://cdn.test/x.jpg"

    def test_only_placeholder_means_no_image(self) -> None:
        html = '<a href="/product/x-1" title="X"><img src="/assets/product-loader.svg"></a>'

        assert _parse(html)[0].main_image is None


class TestAvailability:
    def test_badge_out_of_stock(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="50", badge="Stokda yoxdur"))

        assert _parse(html)[0].availability == Availability.OUT_OF_STOCK

    def test_badge_in_stock(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="50", badge="Stokda"))

        assert _parse(html)[0].availability == Availability.IN_STOCK

    def test_class_indicator(self) -> None:
        html = '<div class="col"><a href="/product/x-1">X</a><span class="sold-out"></span><b>5 AZN</b></div>'

        assert _parse(html)[0].availability == Availability.OUT_OF_STOCK

    def test_price_alone_is_weak_in_stock_signal(self) -> None:
        html = listing_page(product_card("Shoe", "/product/shoe-1", price="50"))

        assert _parse(html)[0].availability == Availability.IN_STOCK

    def test_no_signal_is_unknown(self) -> None:
        html = '<div><a href="/product/x-1">X</a></div>'

        assert _parse(html)[0].availability == Availability.UNKNOWN

    def test_negative_phrase_beats_positive_word(self) -> None:
        assert classify_stock_text("stokda yoxdur") == Availability.OUT_OF_STOCK
        assert classify_stock_text("Outdoor jacket") is None


class TestNextPage:
    def test_link_to_later_page(self) -> None:
        soup = BeautifulSoup(listing_page(next_page=3), "html.parser")

        assert _parser().has_next_page(soup, 2) is True

    def test_link_to_earlier_page_only(self) -> None:
        soup = BeautifulSoup(listing_page(next_page=1), "html.parser")

        assert _parser().has_next_page(soup, 2) is False

    def test_rel_next(self) -> None:
        soup = BeautifulSoup('<a rel="next" href="/brand/x?page=9">more</a>', "html.parser")

        assert _parser().has_next_page(soup, 1) is True


def test_parsing_is_idempotent() -> None:
    html = listing_page(
        product_card("Shoe", "/product/shoe-1", price="89.99", old_price="120", badge="Stokda"),
        product_card("Boot", "/product/boot-2", price="150", image="/img/boot.jpg"),
    )

    first = [
        (p.name, p.current_price, p.original_price, p.availability, p.main_image) for p in _parse(html)
    ]
    second = [
        (p.name, p.current_price, p.original_price, p.availability, p.main_image) for p in _parse(html)
    ]

    assert first == second
    assert len(first) == 2
