from .research_tasks import enhance_competitive_analysis, expire_stale_sections
