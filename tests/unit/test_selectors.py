"""Tests for HTML selector helpers."""

from funding_assistant.core.selectors import (
    cleanup_navigation,
    extract_contact_email,
    extract_heading,
    extract_intro,
    first_link,
    first_text,
    get_main_container,
    parse_html,
)


class TestMainContainer:
    """Tests for get_main_container."""

    def test_prefers_main(self):
        """Test <main> is found first."""
        soup = parse_html("<body><div id='content'>x</div><main>y</main></body>")
        assert get_main_container(soup).name == "main"

    def test_falls_back_to_body(self):
        """Test body is returned when no content selector matches."""
        soup = parse_html("<body><div>x</div></body>")
        assert get_main_container(soup).name == "body"


class TestExtractHeading:
    """Tests for extract_heading."""

    def test_h1(self):
        """Test first h1 text."""
        soup = parse_html("<h1> Grand <em>Solutions</em> </h1><h1>Other</h1>")
        assert extract_heading(soup) == "Grand Solutions"

    def test_missing(self):
        """Test missing or empty h1 returns None."""
        assert extract_heading(parse_html("<p>x</p>")) is None
        assert extract_heading(parse_html("<h1> </h1>")) is None


class TestExtractIntro:
    """Tests for extract_intro."""

    def test_intro_class(self):
        """Test .lead element wins over paragraphs."""
        soup = parse_html("<div><p class='lead'>Kort intro</p><p>Anden tekst</p></div>")
        assert extract_intro(soup) == "Kort intro"

    def test_long_paragraphs_joined(self):
        """Test short paragraphs are skipped and long ones joined."""
        long_a = "A" * 60
        long_b = "B" * 60
        soup = parse_html(f"<div><p>kort</p><p>{long_a}</p><p>{long_b}</p><p>{'C' * 60}</p></div>")
        assert extract_intro(soup) == f"{long_a}\n\n{long_b}"

    def test_nothing_usable(self):
        """Test None when no paragraph is long enough."""
        assert extract_intro(parse_html("<p>kort</p>")) is None


class TestContactAndLinks:
    """Tests for contact and link helpers."""

    def test_mailto_preferred(self):
        """Test mailto link beats addresses in text."""
        soup = parse_html(
            "<p>Skriv til tekst@example.dk</p>"
            "<a href='mailto:kontakt@example.dk?subject=Hej'>Mail</a>"
        )
        assert extract_contact_email(soup) == "kontakt@example.dk"

    def test_text_fallback(self):
        """Test address in text when there is no mailto link."""
        soup = parse_html("<p>Skriv til tekst@example.dk</p>")
        assert extract_contact_email(soup) == "tekst@example.dk"

    def test_cleanup_navigation(self):
        """Test navigation and footer are removed in place."""
        soup = parse_html("<nav>menu</nav><main>indhold</main><footer>fod</footer>")
        cleanup_navigation(soup)
        assert soup.get_text(strip=True) == "indhold"

    def test_first_text_and_link(self):
        """Test first matching text and absolute link."""
        item = parse_html("<div><h3>Titel</h3><a href='/side'>Læs</a></div>").div
        assert first_text(item, "h2, h3") == "Titel"
        assert first_text(item, "p") == ""
        assert first_link(item, "https://example.dk/") == "https://example.dk/side"

    def test_first_link_missing(self):
        """Test None when the item has no link."""
        item = parse_html("<div><h3>Titel</h3></div>").div
        assert first_link(item, "https://example.dk/") is None
