"""
DevGrowth growth accounting.

Turns per-month developer or account activity into the cohort table, the MAU
and MRR growth-accounting series, the chart projections and the date-range
filtering used by the DevGrowth dashboards.
"""

from .cohorts import CohortAssignment, assign_cohorts  # noqa: F401
from .config import PipelineConfig, load_pipeline_config  # noqa: F401
from .dataset import ActivityDataset  # noqa: F401
from .errors import GrowthAccountingError, InvalidTimestamp, MalformedRecord  # noqa: F401
from .filters import default_date_range, filter_growth_data, filter_series  # noqa: F401
from .models import (  # noqa: F401
    ActivityRecord,
    ChartProjection,
    ChartType,
    CohortSeries,
    DateRange,
    DegenerateCohort,
    GrowthAccountingResult,
    GrowthAccountingRow,
    MAUGrowthAccountingRow,
    MRRGrowthAccountingRow,
    ProjectedPoint,
    SkippedRecord,
)
from .payloads import parse_growth_data  # noqa: F401
from .periods import add_months, iter_months, months_between, normalize_period, period_key  # noqa: F401
from .projections import project_cohort_rows  # noqa: F401
from .scope import (  # noqa: F401
    AddRepositoryToCollection,
    ProfileSnapshot,
    RemoveRepositoryFromCollection,
    SetProfileData,
    collection_repositories,
    profile_reducer,
)
from .service import GrowthAccountingService  # noqa: F401
