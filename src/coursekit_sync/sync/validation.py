"""Front-matter validation for source items.

Runs before a publish to catch authoring mistakes the target build would
otherwise reject: missing titles, non-integer ``order`` values, lessons
filed under the wrong course.  Every problem in a file is reported, not
just the first.

Schemas:

- ``lesson``: ``title``, ``moduleId`` and a positive integer ``order``
  are required.
- ``guide``: only ``title`` is required.

Both accept unknown fields.  An optional ``courseSlug`` must equal the
namespace the file was discovered under.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

from pydantic import BaseModel, Field, StrictInt, ValidationError

from coursekit_sync.sync.models import (
    ContentItem,
    FileValidation,
    ValidationIssue,
    ValidationReport,
    ValidationWarning,
)

logger = logging.getLogger(__name__)

DUPLICATE_ORDER = "DUPLICATE_ORDER"

SUGGESTIONS = {
    "courseSlug": (
        'Remove courseSlug or set it to the course id, '
        'e.g. courseSlug: "intro-python"'
    ),
    "moduleId": 'Add moduleId field, e.g. moduleId: "m1"',
    "title": 'Add title field, e.g. title: "Introduction"',
    "order": "Add order field as positive integer, e.g. order: 1",
    "frontmatter": (
        "Add YAML front matter between --- delimiters at start of file"
    ),
}


class Resource(BaseModel):
    label: str
    path: str


class GuideFrontMatter(BaseModel):
    """Front matter every published page needs."""

    title: str = Field(min_length=1)
    description: str | None = None
    draft: bool | None = None
    course_slug: str | None = Field(default=None, alias="courseSlug")

    model_config = {"extra": "allow"}


class LessonFrontMatter(GuideFrontMatter):
    """Front matter for a lesson inside a course module."""

    module_id: str = Field(alias="moduleId", min_length=1)
    order: StrictInt = Field(gt=0)
    duration_minutes: float | None = Field(
        default=None, alias="durationMinutes"
    )
    resources: list[Resource] | None = None


SCHEMAS: dict[str, type[GuideFrontMatter]] = {
    "lesson": LessonFrontMatter,
    "guide": GuideFrontMatter,
}


def _suggestion(field: str) -> str:
    return SUGGESTIONS.get(field, f"Check the {field} field")


def _issues_from(exc: ValidationError) -> list[ValidationIssue]:
    issues = []
    for error in exc.errors():
        loc = error["loc"]
        field = str(loc[0]) if loc else "frontmatter"
        dotted = ".".join(str(part) for part in loc) or field
        if error["type"] == "missing":
            message = f"{dotted} is required"
        else:
            message = error["msg"]
        issues.append(
            ValidationIssue(
                field=dotted,
                message=message,
                suggestion=_suggestion(field),
            )
        )
    return issues


def validate_item(item: ContentItem, schema: str) -> FileValidation:
    """Validate one item's front matter against *schema*.

    Args:
        item: Source item to check.
        schema: Key into ``SCHEMAS``.

    Returns:
        ``FileValidation`` listing every problem found (empty if valid).
    """
    if not item.front_matter:
        return FileValidation(
            key=item.key,
            path=item.path,
            errors=[
                ValidationIssue(
                    field="frontmatter",
                    message="No front matter found",
                    suggestion=SUGGESTIONS["frontmatter"],
                )
            ],
        )

    errors: list[ValidationIssue] = []
    try:
        SCHEMAS[schema].model_validate(dict(item.front_matter))
    except ValidationError as exc:
        errors.extend(_issues_from(exc))

    course_slug = item.front_matter.get("courseSlug")
    if isinstance(course_slug, str) and course_slug not in ("", item.namespace):
        errors.append(
            ValidationIssue(
                field="courseSlug",
                message=(
                    f"courseSlug '{course_slug}' does not match course "
                    f"'{item.namespace}'"
                ),
                suggestion=f'Use courseSlug: "{item.namespace}" or remove it',
            )
        )

    return FileValidation(key=item.key, path=item.path, errors=errors)


def find_duplicate_orders(
    items: Sequence[ContentItem],
) -> list[ValidationWarning]:
    """Warn about items sharing an ``order`` within one module.

    Items are grouped by namespace and ``moduleId``; items without a
    string ``moduleId`` or an integer ``order`` are ignored.
    """
    groups: dict[tuple[str, str, int], list[str]] = defaultdict(list)
    for item in items:
        module_id = item.front_matter.get("moduleId")
        order = item.front_matter.get("order")
        if not isinstance(module_id, str):
            continue
        if not isinstance(order, int) or isinstance(order, bool):
            continue
        groups[(item.namespace, module_id, order)].append(item.path)

    return [
        ValidationWarning(
            code=DUPLICATE_ORDER,
            message=f"Duplicate order {order} in {namespace}:{module_id}",
            files=paths,
        )
        for (namespace, module_id, order), paths in groups.items()
        if len(paths) > 1
    ]


def validate_items(
    items: Sequence[ContentItem],
    schema: str,
    *,
    content_type: str = "",
) -> ValidationReport:
    """Validate every item and collect cross-file warnings.

    Args:
        items: Source items, in discovery order.
        schema: Key into ``SCHEMAS``.
        content_type: Recorded on the report.

    Returns:
        ``ValidationReport`` holding only the failing files.
    """
    results = [validate_item(item, schema) for item in items]
    failed = [r for r in results if not r.valid]
    warnings = find_duplicate_orders(items)

    logger.info(
        "Validated %d %s item(s): %d invalid, %d warning(s)",
        len(items),
        content_type or schema,
        len(failed),
        len(warnings),
    )
    return ValidationReport(
        content_type=content_type,
        total_files=len(items),
        files=failed,
        warnings=warnings,
    )
