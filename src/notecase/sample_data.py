"""Sample dataset used to seed an empty local store."""

from __future__ import annotations

from datetime import timedelta

from .models import Category, Note, Subcategory
from .utils import utc_now


def create_sample_data() -> tuple[list[Category], list[Note]]:
    """Return three categories with two subcategories each, and five notes."""
    now = utc_now()
    yesterday = now - timedelta(days=1)
    last_week = now - timedelta(days=7)

    def _category(
        cat_id: str,
        name: str,
        color: str,
        subs: list[tuple[str, str]],
    ) -> Category:
        return Category(
            id=cat_id,
            name=name,
            color=color,
            created_at=last_week,
            subcategories=[
                Subcategory(
                    id=sub_id,
                    name=sub_name,
                    category_id=cat_id,
                    created_at=last_week,
                )
                for sub_id, sub_name in subs
            ],
        )

    categories = [
        _category(
            "cat_work",
            "Work",
            "#3b82f6",
            [("sub_meetings", "Meetings"), ("sub_projects", "Projects")],
        ),
        _category(
            "cat_personal",
            "Personal",
            "#10b981",
            [("sub_ideas", "Ideas"), ("sub_journal", "Journal")],
        ),
        _category(
            "cat_learning",
            "Learning",
            "#f59e0b",
            [("sub_tutorials", "Tutorials"), ("sub_resources", "Resources")],
        ),
    ]

    notes = [
        Note(
            id="note_1",
            title="Project Planning Meeting",
            content=(
                "<h2>Meeting Notes</h2><p>Discussed the new project timeline "
                "and deliverables.</p><p><strong>Next steps:</strong> Create "
                "detailed project roadmap by Friday.</p>"
            ),
            subcategory_id="sub_meetings",
            tags=["planning", "project", "deadline"],
            created_at=yesterday,
            updated_at=yesterday,
        ),
        Note(
            id="note_2",
            title="App Ideas",
            content=(
                "<h2>Mobile App Concepts</h2><ul><li>Recipe Manager</li>"
                "<li>Habit Tracker</li><li>Photo Journal</li></ul>"
            ),
            subcategory_id="sub_ideas",
            tags=["mobile", "apps", "brainstorming"],
            created_at=now,
            updated_at=now,
        ),
        Note(
            id="note_3",
            title="React Best Practices",
            content=(
                "<h2>React Development Guidelines</h2><ul><li>Use functional "
                "components with hooks</li><li>Implement proper error "
                "boundaries</li></ul>"
            ),
            subcategory_id="sub_tutorials",
            tags=["react", "javascript", "development", "best-practices"],
            created_at=last_week,
            updated_at=yesterday,
        ),
        Note(
            id="note_4",
            title="Daily Reflection",
            content=(
                "<h2>Today's Thoughts</h2><p>Productive day working on the "
                "note-taking app.</p>"
            ),
            subcategory_id="sub_journal",
            tags=["reflection", "progress", "goals"],
            created_at=now,
            updated_at=now,
        ),
        Note(
            id="note_5",
            title="Useful Development Resources",
            content=(
                "<h2>Web Development Resources</h2><ul><li>MDN Web Docs</li>"
                "<li>Tailwind CSS</li></ul>"
            ),
            subcategory_id="sub_resources",
            tags=["resources", "tools", "development", "design"],
            created_at=last_week,
            updated_at=last_week,
        ),
    ]
    return categories, notes
