"""Innovationsfonden: one page per program under /da/programmer/<slug>."""

from funding_assistant.core.models import Source

from .program_pages import ProgramPageAdapter


class InnovationsfondenAdapter(ProgramPageAdapter):
    """
    InnoBooster, InnoFounder, InnoExplorer, Grand Solutions,
    Markedsmodning and Green Solutions.

    All programs are grants outside the de-minimis regime; amounts and
    deadlines stated on the page override the configured defaults.
    """

    source = Source.INNOVATIONSFONDEN
