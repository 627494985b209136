import sys
import unittest
from datetime import date, timedelta
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from domain.recommendation.explain import FALLBACK_TEXT, explain
from domain.recommendation.models import ExplanationKind
from domain.recommendation.scoring import (
    months_since_release,
    rank_candidates,
    recency_bonus,
    score_candidate,
)
from domain.watchlist.entries import RatedMovie
from domain.watchlist.movie import Genre, MovieRef

TODAY = date(2025, 6, 15)

SCI_FI = Genre(878, "Science Fiction")
ACTION = Genre(28, "Action")
DRAMA = Genre(18, "Drama")


def _fav(movie: MovieRef, rating: float) -> RatedMovie:
    return RatedMovie(movie=movie, rating=rating)


class TestRecencyBonus(unittest.TestCase):
    def test_linear_over_twelve_months(self) -> None:
        self.assertEqual(recency_bonus(TODAY, today=TODAY), 1.0)
        self.assertAlmostEqual(recency_bonus(TODAY - timedelta(days=180), today=TODAY), 0.5)
        self.assertEqual(recency_bonus(TODAY - timedelta(days=400), today=TODAY), 0.0)

    def test_unknown_and_future_dates(self) -> None:
        self.assertEqual(months_since_release(None, today=TODAY), 0.0)
        self.assertEqual(months_since_release(TODAY + timedelta(days=90), today=TODAY), -3.0)
        self.assertEqual(recency_bonus(None, today=TODAY), 1.0)
        # Favorites released after today weigh more than brand-new ones.
        self.assertAlmostEqual(recency_bonus(TODAY + timedelta(days=90), today=TODAY), 1.25)


class TestScoreCandidate(unittest.TestCase):
    def test_multi_genre_match_with_recent_favorite(self) -> None:
        inception = MovieRef(
            id=27205,
            title="Inception",
            genres=(SCI_FI, ACTION),
            release_date=TODAY - timedelta(days=30),
        )
        interstellar = MovieRef(id=157336, title="Interstellar", genres=(SCI_FI, ACTION, DRAMA))

        raw = score_candidate(interstellar, [_fav(inception, 5)], today=TODAY)
        self.assertAlmostEqual(raw, 5 * 0.2 * (1 + 11 / 12) + 0.2 * 2)

        rated = MovieRef(id=157336, title="Interstellar", genres=(SCI_FI, ACTION), community_rating=8.4)
        self.assertAlmostEqual(
            score_candidate(rated, [_fav(inception, 5)], today=TODAY),
            (5 * 0.2 * (1 + 11 / 12) + 0.2 * 2) * 0.84,
        )

    def test_single_genre_has_no_bonus(self) -> None:
        old = MovieRef(id=1, title="Old", genres=(DRAMA,), release_date=date(1990, 1, 1))
        candidate = MovieRef(id=2, title="New", genres=(DRAMA, ACTION))

        self.assertAlmostEqual(score_candidate(candidate, [_fav(old, 4)], today=TODAY), 4 * 0.2)

    def test_director_counts_once(self) -> None:
        a = MovieRef(id=1, title="Memento", director="Christopher Nolan", release_date=date(2000, 1, 1))
        b = MovieRef(id=2, title="Tenet", director="Christopher Nolan", release_date=date(2020, 1, 1))
        candidate = MovieRef(id=3, title="Oppenheimer", director="Christopher Nolan")

        # First matching favorite wins, not the best-rated one.
        score = score_candidate(candidate, [_fav(a, 3.5), _fav(b, 5)], today=TODAY)
        self.assertAlmostEqual(score, 3.5 * 0.3)

    def test_actor_matches_sum_per_favorite(self) -> None:
        a = MovieRef(id=1, title="Heat", cast=("Al Pacino", "Robert De Niro"))
        b = MovieRef(id=2, title="Casino", cast=("Robert De Niro", "Sharon Stone"))
        candidate = MovieRef(id=3, title="The Irishman", cast=("Robert De Niro", "Al Pacino"))

        score = score_candidate(candidate, [_fav(a, 4), _fav(b, 5)], today=TODAY)
        self.assertAlmostEqual(score, 4 * 0.2 + 5 * 0.2)

    def test_zero_community_rating_is_ignored(self) -> None:
        fav = MovieRef(id=1, title="A", cast=("X",))
        unrated = MovieRef(id=2, title="B", cast=("X",), community_rating=0)
        missing = MovieRef(id=3, title="C", cast=("X",))

        self.assertAlmostEqual(score_candidate(unrated, [_fav(fav, 5)], today=TODAY), 1.0)
        self.assertAlmostEqual(score_candidate(missing, [_fav(fav, 5)], today=TODAY), 1.0)

    def test_no_overlap_scores_zero(self) -> None:
        fav = MovieRef(id=1, title="A", genres=(DRAMA,), director="D", cast=("X",))
        candidate = MovieRef(id=2, title="B", genres=(ACTION,), director="E", cast=("Y",), community_rating=9)
        self.assertEqual(score_candidate(candidate, [_fav(fav, 5)], today=TODAY), 0.0)


class TestRankCandidates(unittest.TestCase):
    def test_score_then_popularity(self) -> None:
        fav = MovieRef(id=1, title="A", cast=("X",))
        strong = MovieRef(id=2, title="Strong", cast=("X",), popularity=1.0)
        weak_popular = MovieRef(id=3, title="Weak popular", popularity=90.0)
        weak_obscure = MovieRef(id=4, title="Weak obscure", popularity=2.0)
        weak_unknown = MovieRef(id=5, title="Weak unknown")

        ranked = rank_candidates([weak_unknown, weak_obscure, strong, weak_popular], [_fav(fav, 4)], today=TODAY)

        self.assertEqual([m.id for m, _ in ranked], [2, 3, 4, 5])
        self.assertAlmostEqual(ranked[0][1], 0.8)


class TestExplain(unittest.TestCase):
    def setUp(self) -> None:
        self.inception = MovieRef(
            id=1,
            title="Inception",
            genres=(SCI_FI, ACTION),
            director="Christopher Nolan",
            cast=("Leonardo DiCaprio", "Tom Hardy"),
        )

    def test_genre_reason_wins(self) -> None:
        candidate = MovieRef(
            id=2,
            title="Interstellar",
            genres=(SCI_FI, ACTION),
            director="Christopher Nolan",
        )
        reason = explain(candidate, [_fav(self.inception, 5)])

        self.assertIs(reason.kind, ExplanationKind.GENRE)
        self.assertEqual(
            reason.text,
            "Because you rated Inception highly, which shares the science fiction and action genres",
        )

    def test_single_genre_wording(self) -> None:
        candidate = MovieRef(id=2, title="Mad Max", genres=(ACTION,))
        reason = explain(candidate, [_fav(self.inception, 4)])
        self.assertEqual(reason.text, "Because you rated Inception highly, which shares the action genre")

    def test_director_then_actor(self) -> None:
        by_nolan = MovieRef(id=3, title="Dunkirk", director="Christopher Nolan", cast=("Tom Hardy",))
        reason = explain(by_nolan, [_fav(self.inception, 4.5)])
        self.assertIs(reason.kind, ExplanationKind.DIRECTOR)
        self.assertEqual(reason.text, "From Christopher Nolan, director of Inception which you rated highly")

        with_hardy = MovieRef(id=4, title="Legend", cast=("Emily Browning", "Tom Hardy"))
        reason = explain(with_hardy, [_fav(self.inception, 4.5)])
        self.assertIs(reason.kind, ExplanationKind.ACTOR)
        self.assertEqual(reason.text, "Starring Tom Hardy, who you enjoyed in Inception")

    def test_below_threshold_falls_back(self) -> None:
        candidate = MovieRef(id=2, title="Interstellar", genres=(SCI_FI,))

        reason = explain(candidate, [_fav(self.inception, 3.8)])

        self.assertIs(reason.kind, ExplanationKind.SIMILAR)
        self.assertEqual(reason.text, FALLBACK_TEXT)
        self.assertIs(explain(candidate, [_fav(self.inception, 3.8)], threshold=3.5).kind, ExplanationKind.GENRE)


if __name__ == "__main__":
    unittest.main()
