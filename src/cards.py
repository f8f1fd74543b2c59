from typing import Dict, List, Type

from reports.base import BaseCard
from reports.github_cards import (
	GitHubActivityCard,
	GitHubLanguagesCard,
	GitHubStatsCard,
)
from reports.wakatime_cards import (
	WakaTimeEditorsCard,
	WakaTimeLanguagesCard,
	WakaTimeOsCard,
)


ALL_CARDS: List[Type[BaseCard]] = [
	GitHubStatsCard,
	GitHubActivityCard,
	GitHubLanguagesCard,
	WakaTimeLanguagesCard,
	WakaTimeEditorsCard,
	WakaTimeOsCard,
]

CARDS_BY_ID: Dict[str, Type[BaseCard]] = {card.card_id: card for card in ALL_CARDS}


def select_cards(card_ids=None, report_ids=None) -> List[Type[BaseCard]]:
	"""Catalog cards filtered by id and/or report, in catalog order. Unknown ids raise KeyError."""
	unknown = sorted(set(card_ids or ()) - set(CARDS_BY_ID))
	if unknown:
		raise KeyError(f"unknown card(s): {', '.join(unknown)}")
	selected = []
	for card in ALL_CARDS:
		if card_ids and card.card_id not in card_ids:
			continue
		if report_ids and card.report_id not in report_ids:
			continue
		selected.append(card)
	return selected
