from __future__ import annotations

from unittest import TestCase

from mealcraft.services.feedback import (
    FeedbackInsights,
    build_feedback_context,
    build_user_learning_profile,
    extract_common_issues,
    process_feedback,
)

RECIPES = [
    {
        "id": 1,
        "ingredients": [{"name": "Chicken"}, {"name": "Rice"}],
        "cuisineType": "Thai",
        "difficulty": "easy",
        "prepTime": 10,
        "cookTime": 20,
        "nutrition": {"calories": 500, "protein": 30, "carbs": 50, "fat": 20},
    },
    {
        "id": 2,
        "ingredients": [{"name": "chicken"}, {"name": "Broccoli"}],
        "cuisineType": "Thai",
        "difficulty": "easy",
        "prepTime": 20,
        "cookTime": 30,
        "nutrition": {"calories": 700, "protein": 40, "carbs": 70, "fat": 25},
    },
    {
        "id": 3,
        "ingredients": [{"name": "Anchovies"}],
        "cuisineType": "French",
        "difficulty": "hard",
        "prepTime": 40,
        "cookTime": 60,
        "nutrition": {"calories": 400, "protein": 20, "carbs": 30, "fat": 20},
    },
]

FEEDBACK = [
    {"recipeId": 1, "liked": True, "userId": "user-1"},
    {"recipeId": 2, "liked": True, "userId": "user-1"},
    {"recipeId": 3, "liked": False, "feedback": "Far too salty", "userId": "user-1"},
]


class CommonIssuesTest(TestCase):
    def test_issue_needs_two_mentions(self):
        feedbacks = [
            {"liked": False, "feedback": "Bland and boring"},
            {"liked": False, "feedback": "Bland again"},
            {"liked": True, "feedback": "Too bland but nice"},
            {"liked": False, "feedback": "Way too salty"},
        ]
        self.assertEqual(extract_common_issues(feedbacks), ["too_bland"])

    def test_reported_issues_count(self):
        feedbacks = [
            {"liked": False, "feedback": "meh", "reportedIssues": ["portion_size"]},
            {"liked": False, "feedback": "meh", "reportedIssues": ["portion_size"]},
        ]
        self.assertEqual(extract_common_issues(feedbacks), ["portion_size"])


class ProcessFeedbackTest(TestCase):
    def test_insights_from_liked_and_disliked_recipes(self):
        insights = process_feedback(RECIPES, FEEDBACK)

        self.assertEqual(insights.preferred_ingredients, ["chicken", "rice", "broccoli"])
        self.assertEqual(insights.avoided_ingredients, ["anchovies"])
        self.assertEqual(insights.liked_cuisines, ["Thai"])
        self.assertEqual(insights.disliked_cuisines, [])
        self.assertEqual(insights.preferred_difficulty, "easy")
        self.assertEqual(insights.max_prep_time, 18)
        self.assertEqual(insights.max_cook_time, 30)
        self.assertEqual(insights.calorie_range, {"min": 500.0, "max": 700.0})
        self.assertEqual(insights.protein_tolerance, 5.0)
        self.assertEqual(insights.common_issues, [])
        self.assertEqual(
            insights.prompt_optimizations,
            [
                "Prioritize recipes containing: chicken, rice, broccoli",
                "Avoid or minimize use of: anchovies",
                "Favor Thai cuisine styles",
                "Prefer easy difficulty recipes",
                "Focus on quick prep recipes (under 30 minutes)",
            ],
        )

    def test_no_feedback_keeps_defaults(self):
        insights = process_feedback(RECIPES, [])
        self.assertEqual(insights.preferred_ingredients, [])
        self.assertEqual(insights.preferred_difficulty, "medium")
        self.assertEqual(insights.max_prep_time, 15)
        self.assertEqual(insights.calorie_range, {"min": 100, "max": 0.0})
        self.assertEqual(insights.protein_tolerance, 10)


class LearningProfileTest(TestCase):
    def test_profile_ignores_other_users(self):
        feedbacks = FEEDBACK + [{"recipeId": 3, "liked": True, "userId": "someone-else"}]
        profile = build_user_learning_profile("user-1", RECIPES, feedbacks)
        self.assertEqual(profile.total_feedback, 3)
        self.assertAlmostEqual(profile.positive_ratio, 2 / 3)
        self.assertEqual(profile.confidence, 0.5)

    def test_confidence_grows_with_consistent_feedback(self):
        feedbacks = [{"recipeId": 1, "liked": True} for _ in range(5)]
        profile = build_user_learning_profile("user-1", RECIPES, feedbacks)
        self.assertAlmostEqual(profile.confidence, 0.8)


class FeedbackContextTest(TestCase):
    def test_context_sentence(self):
        insights = FeedbackInsights(preferred_ingredients=["chicken", "rice"], common_issues=["too_bland"])
        self.assertEqual(
            build_feedback_context(insights),
            "User enjoys: chicken, rice. Prefers medium difficulty recipes. Common concerns: too_bland",
        )
