# utils/timeline.py
import pandas as pd

from db import EntityNotFound, EntityStore

TIMELINE_COLUMNS = ["Item", "Due", "Status", "Type", "Progress"]


def timeline_df_for_project(store: EntityStore, project_id: str) -> pd.DataFrame:
    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)
    tasks = store.query("tasks", project_id=project_id)

    rows = []
    for m in project.get_milestones():
        rows.append({
            "Item": f"Milestone: {m.title}",
            "Due": m.due_date,
            "Status": m.status,
            "Type": "Milestone",
            "Progress": m.progress,
        })
    for t in tasks:
        rows.append({
            "Item": f"  ↳ {t.name}",
            "Due": t.deadline,
            "Status": t.status,
            "Type": "Task",
            "Progress": None,
        })
    df = pd.DataFrame(rows, columns=TIMELINE_COLUMNS)
    if not df.empty:
        df = df.dropna(subset=["Due"]).sort_values(["Due", "Type"], kind="stable").reset_index(drop=True)
    return df
