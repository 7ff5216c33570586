from pydantic import BaseModel, ConfigDict, Field


class JiraIssue(BaseModel):
    """A Jira issue as returned by the upstream fetcher."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., description="Issue key (e.g. PROJ-123)")
    summary: str = Field(..., description="Issue summary/title")
    status: str = Field(..., description="Current status (e.g. In Progress, To Do)")
    issue_type: str | None = Field(None, alias="issueType", description="Story, Bug, Task...")
    priority: str | None = Field(None, description="Priority level")
    url: str | None = Field(None, description="Direct URL to the issue")
    description: str | None = Field(None, description="Full ticket description")


class JiraIssuesResponse(BaseModel):
    """List of Jira issues; this is the payload the cache stores verbatim."""

    issues: list[JiraIssue] = Field(default_factory=list)
    total: int = Field(0, ge=0)

    @classmethod
    def from_issues(cls, issues: list[JiraIssue]) -> "JiraIssuesResponse":
        return cls(issues=issues, total=len(issues))
