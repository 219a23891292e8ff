from __future__ import annotations

from dataclasses import dataclass

from quick_delivery.models import Platform


@dataclass(frozen=True)
class BoardEndpoints:
    login_url: str
    profile_url: str
    search_url: str
    recommend_url: str
    deliver_url: str
    link_tokens: tuple[str, ...]
    keyword_param: str
    city_param: str


PLATFORM_ENDPOINTS: dict[Platform, BoardEndpoints] = {
    Platform.BOSS_ZHIPIN: BoardEndpoints(
        login_url="https://www.zhipin.com/web/user/",
        profile_url="https://www.zhipin.com/web/geek/chat",
        search_url="https://www.zhipin.com/web/geek/job",
        recommend_url="https://www.zhipin.com/web/geek/job-recommend",
        deliver_url="https://www.zhipin.com/wapi/zpgeek/friend/add.json",
        link_tokens=("/job_detail/",),
        keyword_param="query",
        city_param="city",
    ),
    Platform.ZHILIAN_ZHAOPIN: BoardEndpoints(
        login_url="https://passport.zhaopin.com/login",
        profile_url="https://i.zhaopin.com/",
        search_url="https://sou.zhaopin.com/",
        recommend_url="https://i.zhaopin.com/recommend",
        deliver_url="https://fe-api.zhaopin.com/c/i/deliver/deliver",
        link_tokens=("jobs.zhaopin.com/",),
        keyword_param="kw",
        city_param="jl",
    ),
    Platform.JOB_51: BoardEndpoints(
        login_url="https://login.51job.com/login.php",
        profile_url="https://we.51job.com/pc/my/myjob",
        search_url="https://we.51job.com/pc/search",
        recommend_url="https://we.51job.com/pc/my/recommend",
        deliver_url="https://we.51job.com/api/job/apply",
        link_tokens=("jobs.51job.com/",),
        keyword_param="keyword",
        city_param="jobArea",
    ),
    Platform.LIEPIN: BoardEndpoints(
        login_url="https://www.liepin.com/login/",
        profile_url="https://c.liepin.com/",
        search_url="https://www.liepin.com/zhaopin/",
        recommend_url="https://www.liepin.com/career/recommend/",
        deliver_url="https://api-c.liepin.com/api/com.liepin.capply.apply",
        link_tokens=("/job/", "/a/"),
        keyword_param="key",
        city_param="dq",
    ),
}
