# models/__init__.py
from .project import Project
from .milestone import Milestone
from .metrics import ProjectMetrics
from .task import Task
from .team import Team
from .activity import Activity
from .earning import Earning
