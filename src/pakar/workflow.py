"""Wizard steps: check prerequisites, run one operation, apply its result atomically."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .models.llm_client import LLMClient
from .operations import OperationName
from .operations import activities as activities_op
from .operations import analyze as analyze_op
from .operations import dimensions as dimensions_op
from .operations import finalize as finalize_op
from .operations import goals as goals_op
from .operations import ideas as ideas_op
from .operations import themes as themes_op
from .project import ProjectState, check_prerequisites, format_context_analysis, touch

LOGGER = logging.getLogger(__name__)


async def run_step(
    project: ProjectState,
    action: OperationName | str,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
    finalize_model: Optional[str] = None,
) -> ProjectState:
    """Run the operation behind ``action`` and return an updated copy of ``project``.

    ``project`` itself is never modified; on any error the caller keeps the
    state it had before the step.
    """
    name = OperationName(action)
    check_prerequisites(project, name.value)
    LOGGER.info("Running wizard step %s for project %s", name.value, project.id)

    if name is OperationName.ANALYZE:
        summary = await analyze_op.run(
            analyze_op.AnalyzeRequest(reflection=format_context_analysis(project.context_analysis)),
            client=client,
            logs_root=logs_root,
        )
        update = {"analysis_summary": summary}
    elif name is OperationName.DIMENSIONS:
        names = await dimensions_op.run(
            dimensions_op.DimensionsRequest(analysis=project.analysis_summary),
            client=client,
            logs_root=logs_root,
        )
        update = {"recommended_dimensions": names}
    elif name is OperationName.THEMES:
        options = await themes_op.run(
            themes_op.ThemesRequest(analysis=project.analysis_summary, dimensions=list(project.selected_dimensions)),
            client=client,
            logs_root=logs_root,
        )
        update = {"theme_options": options}
    elif name is OperationName.IDEAS:
        ideas = await ideas_op.run(
            ideas_op.IdeasRequest(
                theme=project.selected_theme,
                activity_format=project.activity_format,
                analysis=project.analysis_summary,
            ),
            client=client,
            logs_root=logs_root,
        )
        update = {"creative_ideas": ideas}
    elif name is OperationName.GOALS:
        goals = await goals_op.run(
            goals_op.GoalsRequest(
                theme=project.selected_theme,
                dimensions=list(project.selected_dimensions),
                activity_format=project.activity_format,
                phase=project.phase,
                title=project.title,
                description=project.project_description,
            ),
            client=client,
            logs_root=logs_root,
        )
        update = {"project_goals": goals}
    elif name is OperationName.ACTIVITIES:
        planned = await activities_op.run(
            activities_op.ActivitiesRequest(
                total_jp=project.project_jp_allocation,
                theme=project.selected_theme,
                goals=list(project.project_goals),
                activity_format=project.activity_format,
                title=project.title,
            ),
            client=client,
            logs_root=logs_root,
        )
        update = {"activities": planned}
    else:
        sections = await finalize_op.run(
            finalize_op.FinalizeRequest(
                title=project.title,
                theme=project.selected_theme,
                dimensions=list(project.selected_dimensions),
                goals=list(project.project_goals),
                activities=list(project.activities),
            ),
            client=client,
            model=finalize_model,
            logs_root=logs_root,
        )
        update = {
            "activity_locations": sections.activity_locations,
            "pedagogical_strategy": sections.pedagogical_strategy,
            "learning_environment": sections.learning_environment,
            "partnerships": sections.partnerships or project.partnerships,
            "digital_tools": sections.digital_tools,
            "assessment_plan": sections.assessment_plan,
            "assessment_rubrics": sections.assessment_rubrics,
            "activities": finalize_op.merge_activity_steps(project.activities, sections.activities),
        }

    return touch(project.model_copy(update=update))


__all__ = ["run_step"]
