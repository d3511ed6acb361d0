import unittest

from golfdraw.draw.errors import ErrorCategory, InsufficientDiversityError
from golfdraw.draw.frequency import count_frequencies, select_winning_combination


# Four score sets whose rarest values are 3, 7, 11 and most common 22, 30.
SCENARIO_SETS = [
    [7, 11, 22, 30, 40],
    [3, 22, 30, 40, 35],
    [22, 30, 40, 35, 25],
    [22, 30, 35, 25, 36],
]


def _flatten(sets):
    return [value for scores in sets for value in scores]


class FrequencyAnalyzerTests(unittest.TestCase):
    def test_count_frequencies_ignores_out_of_range_values(self) -> None:
        counts = count_frequencies([1, 5, 5, 10, 44, 45], 5, 44)
        self.assertEqual(counts, {5: 2, 10: 1, 44: 1})

    def test_example_scenario_combination(self) -> None:
        combination = select_winning_combination(_flatten(SCENARIO_SETS), 1, 45)

        self.assertEqual(combination.rare, (3, 7, 11))
        self.assertEqual(set(combination.common), {22, 30})
        self.assertEqual(combination.numbers, (3, 7, 11, 22, 30))

    def test_rare_ties_prefer_lower_values(self) -> None:
        values = [10, 20, 30, 40, 45, 10, 20]  # 30, 40, 45 appear once
        combination = select_winning_combination(values, 1, 45)
        self.assertEqual(combination.rare, (30, 40, 45))
        self.assertEqual(combination.common, (20, 10))

    def test_common_ties_prefer_higher_values(self) -> None:
        values = [1, 2, 3] + [10, 10, 11, 11, 12, 12]
        combination = select_winning_combination(values, 1, 45)
        self.assertEqual(combination.rare, (1, 2, 3))
        self.assertEqual(combination.common, (12, 11))

    def test_common_group_excludes_rare_values(self) -> None:
        # Only five distinct values: every one of them must be used once.
        values = [5, 6, 7, 8, 9, 9]
        combination = select_winning_combination(values, 1, 45)
        self.assertEqual(combination.rare, (5, 6, 7))
        self.assertEqual(combination.common, (9, 8))
        self.assertEqual(len(set(combination.numbers)), 5)

    def test_combination_respects_range(self) -> None:
        values = _flatten(SCENARIO_SETS)
        combination = select_winning_combination(values, 20, 40)
        self.assertTrue(all(20 <= v <= 40 for v in combination.numbers))
        self.assertEqual(len(set(combination.numbers)), 5)

    def test_is_deterministic_regardless_of_input_order(self) -> None:
        values = _flatten(SCENARIO_SETS)
        first = select_winning_combination(values, 1, 45)
        second = select_winning_combination(list(reversed(values)), 1, 45)
        self.assertEqual(first, second)

    def test_insufficient_diversity(self) -> None:
        with self.assertRaises(InsufficientDiversityError) as ctx:
            select_winning_combination([1, 2, 3, 4, 4, 4, 50], 1, 45)
        self.assertEqual(ctx.exception.distinct_values, 4)
        self.assertEqual(ctx.exception.category, ErrorCategory.PRECONDITION)
        self.assertIsInstance(ctx.exception, ValueError)


if __name__ == "__main__":
    unittest.main()
