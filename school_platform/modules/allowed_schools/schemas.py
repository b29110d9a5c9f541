from pydantic import BaseModel


class AllowedSchoolCreate(BaseModel):
    competition_id: str
    school_id: str  # tenant being granted access


class AllowedSchoolResponse(BaseModel):
    competition_id: str
    school_id: str

    class Config:
        from_attributes = True
