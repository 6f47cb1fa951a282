"""
Matchup generation from division, conference and rotation rules.

The generator decides *who plays whom* for a season. It never assigns slots.
Phases run in a fixed order against a running per-team game counter:

1. Division home-and-away round robin.
2. Intra-conference division rotation.
3. Cross-conference division rotation.
4. Same-standing pairings inside the conference.
5. Balancing pass for teams still short of the target.

Hosts of single meetings are then reversed where needed so every team
ends within one game of an even home/away split.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, List, Dict, Optional, Set, FrozenSet, Tuple

from .models import Matchup, MatchupCategory, Participant
from .config import SchedulerConfig
from .exceptions import ConfigurationError, GenerationShortfall
from .ingest import create_teams_from_config

logger = logging.getLogger(__name__)


# Division pairings inside a four-division conference, indexed by (season - 1) % 3.
INTRA_CONFERENCE_ROTATION: Tuple[Tuple[Tuple[int, int], ...], ...] = (
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
)

# Division pairings across two four-division conferences, indexed by (season - 1) % 4.
# Each tuple is (first conference division, second conference division).
CROSS_CONFERENCE_ROTATION: Tuple[Tuple[Tuple[int, int], ...], ...] = (
    ((0, 0), (1, 1), (2, 2), (3, 3)),
    ((0, 1), (1, 2), (2, 3), (3, 0)),
    ((0, 2), (1, 3), (2, 0), (3, 1)),
    ((0, 3), (1, 0), (2, 1), (3, 2)),
)


def circle_rounds(count: int) -> List[List[Tuple[int, int]]]:
    """
    Round-robin rounds over ``count`` indices using the circle method.

    With an odd count one index sits out each round.
    """
    indices: List[Optional[int]] = list(range(count))
    if count % 2 == 1:
        indices.append(None)
    n = len(indices)

    rounds = []
    for _ in range(n - 1):
        pairs = []
        for i in range(n // 2):
            a, b = indices[i], indices[n - 1 - i]
            if a is not None and b is not None:
                pairs.append((min(a, b), max(a, b)))
        rounds.append(pairs)
        # Rotate everything but the first position
        indices = [indices[0]] + [indices[-1]] + indices[1:-1]
    return rounds


def intra_conference_pairs(season: int, division_count: int) -> List[Tuple[int, int]]:
    """Division index pairs that meet inside a conference this season."""
    if division_count < 2:
        return []
    if division_count == 4:
        table = [list(r) for r in INTRA_CONFERENCE_ROTATION]
    else:
        table = circle_rounds(division_count)
    return table[(season - 1) % len(table)]


def cross_conference_offset(season: int, division_count: int) -> int:
    """Offset so that first-conference division i meets second-conference division (i + offset) % d."""
    if division_count == 4:
        first, second = CROSS_CONFERENCE_ROTATION[(season - 1) % len(CROSS_CONFERENCE_ROTATION)][0]
        return (second - first) % division_count
    return (season - 1) % division_count


def cross_conference_pairs(season: int, division_count: int) -> List[Tuple[int, int]]:
    """Division index pairs that meet across conferences this season."""
    if division_count == 4:
        return list(CROSS_CONFERENCE_ROTATION[(season - 1) % len(CROSS_CONFERENCE_ROTATION)])
    offset = cross_conference_offset(season, division_count)
    return [(i, (i + offset) % division_count) for i in range(division_count)]


@dataclass
class League:
    """Teams grouped into divisions and conferences, in listing order."""
    participants: Dict[str, Participant] = field(default_factory=dict)
    conferences: Dict[str, List[str]] = field(default_factory=dict)
    divisions: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: SchedulerConfig) -> "League":
        participants = create_teams_from_config(config)
        league = cls(participants=participants)
        for team in participants.values():
            divisions = league.conferences.setdefault(team.conference, [])
            if team.division not in divisions:
                divisions.append(team.division)
            league.divisions.setdefault(team.division, []).append(team.id)
        return league

    @property
    def teams(self) -> List[str]:
        return list(self.participants)

    def division_index(self, team: str) -> int:
        participant = self.participants[team]
        return self.conferences[participant.conference].index(participant.division)

    def find_team_with_rank(self, division: str, rank: int) -> Optional[str]:
        """First team in a division holding the given prior-season rank."""
        for team in self.divisions.get(division, []):
            if self.participants[team].rank == rank:
                return team
        return None


class MatchupGenerator:
    """Builds the season's matchup multiset for a league."""

    def __init__(self, league: League, games_per_team: int, season: int = 1):
        self.league = league
        self.games_per_team = games_per_team
        self.season = season

        self.matchups: List[Matchup] = []
        self._counts: Dict[str, int] = {team: 0 for team in league.teams}
        self._home: Dict[str, int] = {team: 0 for team in league.teams}
        self._met: Set[FrozenSet[str]] = set()
        self._order: Dict[str, int] = {team: i for i, team in enumerate(league.teams)}

    def generate(self) -> List[Matchup]:
        """
        Run every phase and return the validated matchup list.

        Raises:
            ConfigurationError: If the league cannot fit its division games
                or the result fails structural validation.
            GenerationShortfall: If teams remain short after balancing.
        """
        self._check_division_capacity()

        phases = [
            ("division round robin", self._division_round_robin),
            ("intra-conference rotation", self._intra_conference_rotation),
            ("cross-conference rotation", self._cross_conference_rotation),
            ("same-standing pairings", self._same_standing_pairings),
            ("balancing", self._balance),
        ]
        for name, phase in phases:
            before = len(self.matchups)
            phase()
            logger.info("Phase %s added %d matchups", name, len(self.matchups) - before)

        shortfall = self.shortfall()
        if shortfall:
            raise GenerationShortfall(shortfall, self.games_per_team)

        flipped = self._balance_home_away()
        logger.info("Home/away balancing reversed %d matchups", flipped)

        errors = validate_matchups(self.matchups, self.league, self.games_per_team)
        if errors:
            raise ConfigurationError("Generated matchups are invalid: " + "; ".join(errors))

        logger.info("Generated %d matchups for %d teams", len(self.matchups), len(self._counts))
        return list(self.matchups)

    def shortfall(self) -> Dict[str, int]:
        """Games each short team still needs."""
        return {
            team: self.games_per_team - count
            for team, count in self._counts.items()
            if count < self.games_per_team
        }

    # ---- bookkeeping ----

    def _add(self, host: str, visitor: str, category: MatchupCategory) -> None:
        self.matchups.append(Matchup(host=host, visitor=visitor, category=category))
        self._counts[host] += 1
        self._counts[visitor] += 1
        self._home[host] += 1
        self._met.add(frozenset((host, visitor)))

    def _can_pair(self, a: str, b: str) -> bool:
        return (
            a != b
            and frozenset((a, b)) not in self._met
            and self._counts[a] < self.games_per_team
            and self._counts[b] < self.games_per_team
        )

    def _choose_host(self, a: str, b: str) -> str:
        # Fewer home games hosts; ties fall back to listing positions plus season parity
        if self._home[a] != self._home[b]:
            return a if self._home[a] < self._home[b] else b
        first, second = sorted((a, b), key=self._order.get)
        return first if (self._order[a] + self._order[b] + self.season) % 2 == 0 else second

    def _check_division_capacity(self) -> None:
        for division, teams in self.league.divisions.items():
            needed = 2 * (len(teams) - 1)
            if needed > self.games_per_team:
                raise ConfigurationError(
                    f"Division {division} needs {needed} division games per team "
                    f"but only {self.games_per_team} games are allowed"
                )

    # ---- phases ----

    def _division_round_robin(self) -> None:
        for teams in self.league.divisions.values():
            for i in range(len(teams)):
                for j in range(i + 1, len(teams)):
                    self._add(teams[i], teams[j], MatchupCategory.DIVISION)
                    self._add(teams[j], teams[i], MatchupCategory.DIVISION)

    def _pair_divisions(self, division_a: str, division_b: str, category: MatchupCategory) -> None:
        teams_a = self.league.divisions[division_a]
        teams_b = self.league.divisions[division_b]
        for ai, a in enumerate(teams_a):
            for bi, b in enumerate(teams_b):
                if not self._can_pair(a, b):
                    continue
                # Checkerboard keeps home and away even within the series
                if (ai + bi + self.season) % 2 == 0:
                    self._add(a, b, category)
                else:
                    self._add(b, a, category)

    def _intra_conference_rotation(self) -> None:
        for divisions in self.league.conferences.values():
            for i, j in intra_conference_pairs(self.season, len(divisions)):
                self._pair_divisions(divisions[i], divisions[j], MatchupCategory.CONFERENCE)

    def _cross_conference_rotation(self) -> None:
        conferences = list(self.league.conferences.values())
        if len(conferences) != 2:
            logger.debug("Skipping cross-conference rotation for %d conference(s)", len(conferences))
            return
        first, second = conferences
        if len(first) != len(second):
            logger.warning(
                "Skipping cross-conference rotation: conferences have %d and %d divisions",
                len(first), len(second)
            )
            return
        for i, j in cross_conference_pairs(self.season, len(first)):
            self._pair_divisions(first[i], second[j], MatchupCategory.CROSS)

    def _same_standing_pairings(self) -> None:
        for team in self.league.teams:
            participant = self.league.participants[team]
            for division in self.league.conferences[participant.conference]:
                if division == participant.division:
                    continue
                if any(frozenset((team, other)) in self._met for other in self.league.divisions[division]):
                    continue
                opponent = self.league.find_team_with_rank(division, participant.rank)
                if opponent is not None and self._can_pair(team, opponent):
                    host = self._choose_host(team, opponent)
                    visitor = opponent if host == team else team
                    self._add(host, visitor, MatchupCategory.CONFERENCE)

    def _extra_game_division(self, team: str) -> Optional[str]:
        """Cross-conference division a team's balancing game should come from."""
        conferences = list(self.league.conferences)
        if len(conferences) != 2:
            return None
        first, second = (self.league.conferences[c] for c in conferences)
        if len(first) != len(second):
            return None

        d = len(first)
        extra = (cross_conference_offset(self.season, d) + d // 2) % d
        index = self.league.division_index(team)
        if self.league.participants[team].conference == conferences[0]:
            return second[(index + extra) % d]
        return first[(index - extra) % d]

    def _balance_candidates(self, team: str, work: List[str]) -> List[str]:
        participant = self.league.participants[team]
        many_conferences = len(self.league.conferences) > 1
        candidates = []
        for other in work:
            if not self._can_pair(team, other):
                continue
            opponent = self.league.participants[other]
            if many_conferences and opponent.conference == participant.conference:
                continue
            if not many_conferences and opponent.division == participant.division:
                continue
            candidates.append(other)
        return candidates

    def _balance(self) -> None:
        work = [team for team in self.league.teams if self._counts[team] < self.games_per_team]
        bound = len(work) * max(len(self._counts), 1) + 1

        steps = 0
        while work and steps < bound:
            steps += 1
            team = work[0]
            candidates = self._balance_candidates(team, work)
            if not candidates:
                # Nobody left to pair with; report it as shortfall later
                work.pop(0)
                continue

            rank = self.league.participants[team].rank
            extra_division = self._extra_game_division(team)

            def preference(other: str) -> Tuple[int, int]:
                opponent = self.league.participants[other]
                same_rank = opponent.rank == rank
                in_extra = opponent.division == extra_division
                if same_rank and in_extra:
                    tier = 0
                elif same_rank:
                    tier = 1
                elif in_extra:
                    tier = 2
                else:
                    tier = 3
                return (tier, self._order[other])

            opponent = min(candidates, key=preference)
            host = self._choose_host(team, opponent)
            visitor = opponent if host == team else team
            if self.league.participants[team].conference != self.league.participants[opponent].conference:
                category = MatchupCategory.CROSS
            else:
                category = MatchupCategory.CONFERENCE
            self._add(host, visitor, category)

            for t in (team, opponent):
                if self._counts[t] >= self.games_per_team and t in work:
                    work.remove(t)

    def _balance_home_away(self) -> int:
        """
        Reverse hosts until every team's home count is within one of its away count.

        Division games come in home-and-away pairs and are never touched, so
        only single meetings are reversed. A team with too many home games
        hands one off along a chain of its hosted games to the first team
        that can take another; a team with too few pulls one the same way.
        Reversing a whole chain leaves every team in the middle unchanged.

        Returns:
            int: Number of matchups reversed
        """
        singles = [i for i, m in enumerate(self.matchups) if m.category != MatchupCategory.DIVISION]
        home = {team: 0 for team in self._counts}
        played = {team: 0 for team in self._counts}
        for i in singles:
            matchup = self.matchups[i]
            home[matchup.host] += 1
            played[matchup.host] += 1
            played[matchup.visitor] += 1

        def low(team: str) -> int:
            return played[team] // 2

        def high(team: str) -> int:
            return (played[team] + 1) // 2

        flipped = 0
        for team in self.league.teams:
            while home[team] > high(team):
                path = self._reversal_path(team, singles, True, lambda t: home[t] < high(t))
                if not path:
                    break
                flipped += self._reverse(path, home)
        for team in self.league.teams:
            while home[team] < low(team):
                path = self._reversal_path(team, singles, False, lambda t: home[t] > low(t))
                if not path:
                    break
                flipped += self._reverse(path, home)
        return flipped

    def _reversal_path(self, start: str, singles: List[int], hosted: bool,
                       done: Callable[[str], bool]) -> Optional[List[int]]:
        # Breadth-first over hosted games (or visited games), in matchup order
        parents: Dict[str, Optional[Tuple[int, str]]] = {start: None}
        queue = deque([start])
        while queue:
            team = queue.popleft()
            if team != start and done(team):
                path = []
                while parents[team] is not None:
                    index, team = parents[team]
                    path.append(index)
                return path
            for i in singles:
                matchup = self.matchups[i]
                here, there = (matchup.host, matchup.visitor) if hosted else (matchup.visitor, matchup.host)
                if here == team and there not in parents:
                    parents[there] = (i, team)
                    queue.append(there)
        return None

    def _reverse(self, path: List[int], home: Dict[str, int]) -> int:
        for i in path:
            matchup = self.matchups[i]
            home[matchup.host] -= 1
            home[matchup.visitor] += 1
            self.matchups[i] = matchup.reversed()
        return len(path)


def validate_matchups(matchups: List[Matchup], league: League, games_per_team: int) -> List[str]:
    """
    Check a matchup set against the season's structural targets.

    Args:
        matchups: Matchups to check
        league: League the matchups were generated for
        games_per_team: Required games per team

    Returns:
        List[str]: Error messages, empty when the set is valid
    """
    errors = []
    teams = league.teams

    expected_total = len(teams) * games_per_team / 2
    if len(matchups) != expected_total:
        errors.append(f"Expected {expected_total:g} matchups, got {len(matchups)}")

    games = {team: 0 for team in teams}
    division_games = {team: 0 for team in teams}
    home_games = {team: 0 for team in teams}
    ordered: Set[Tuple[str, str]] = set()
    unordered: Dict[FrozenSet[str], int] = {}

    for matchup in matchups:
        if matchup.is_self_match:
            errors.append(f"Self matchup: {matchup.host}")
            continue
        for team in matchup.teams:
            if team not in games:
                errors.append(f"Unknown team in matchup: {team}")
                continue
            games[team] += 1
        if matchup.host in home_games:
            home_games[matchup.host] += 1

        key = (matchup.host, matchup.visitor)
        if key in ordered:
            errors.append(f"Duplicate matchup: {matchup.label}")
        ordered.add(key)
        unordered[matchup.pair] = unordered.get(matchup.pair, 0) + 1

        host = league.participants.get(matchup.host)
        visitor = league.participants.get(matchup.visitor)
        if host and visitor and host.division == visitor.division:
            division_games[matchup.host] += 1
            division_games[matchup.visitor] += 1

    for team in teams:
        if games[team] != games_per_team:
            errors.append(f"Team {team} has {games[team]} games, expected {games_per_team}")
        expected_division = 2 * (len(league.divisions[league.participants[team].division]) - 1)
        if division_games[team] != expected_division:
            errors.append(
                f"Team {team} has {division_games[team]} division games, expected {expected_division}"
            )
        if not games_per_team // 2 <= home_games[team] <= (games_per_team + 1) // 2:
            errors.append(
                f"Team {team} has {home_games[team]} home games in {games_per_team}"
            )

    for pair, count in unordered.items():
        a, b = sorted(pair)
        same_division = (
            a in league.participants and b in league.participants
            and league.participants[a].division == league.participants[b].division
        )
        if count > (2 if same_division else 1):
            errors.append(f"Teams {a} and {b} meet {count} times")

    return errors


def build_matchups(config: SchedulerConfig, league: Optional[League] = None) -> List[Matchup]:
    """
    Build the season's matchups from configuration.

    Args:
        config: Scheduler configuration
        league: Optional prebuilt league (created from config if not provided)

    Returns:
        List[Matchup]: Validated matchups
    """
    if league is None:
        league = League.from_config(config)
    generator = MatchupGenerator(league, config.games_per_team, config.season)
    return generator.generate()


def get_matchup_summary(matchups: List[Matchup]) -> Dict:
    """
    Get summary statistics for matchups.

    Args:
        matchups: List of matchups

    Returns:
        Dict: Summary statistics
    """
    if not matchups:
        return {}

    category_counts: Dict[str, int] = {}
    team_game_counts: Dict[str, int] = {}
    home_counts: Dict[str, int] = {}
    away_counts: Dict[str, int] = {}

    for matchup in matchups:
        category_counts[matchup.category.value] = category_counts.get(matchup.category.value, 0) + 1

        for team in matchup.teams:
            team_game_counts[team] = team_game_counts.get(team, 0) + 1
        home_counts[matchup.host] = home_counts.get(matchup.host, 0) + 1
        away_counts[matchup.visitor] = away_counts.get(matchup.visitor, 0) + 1

    summary = {
        'total_matchups': len(matchups),
        'categories': category_counts,
        'teams': len(team_game_counts),
        'games_per_team': team_game_counts,
        'home_games': home_counts,
        'away_games': away_counts,
    }

    return summary
