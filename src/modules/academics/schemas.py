"""Schemas for Academics module."""

from datetime import date

from pydantic import BaseModel, Field, model_validator


class AcademicSessionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    starts_on: date | None = None
    ends_on: date | None = None


class AcademicSessionResponse(BaseModel):
    id: int
    school_id: int
    name: str
    starts_on: date | None
    ends_on: date | None

    model_config = {"from_attributes": True}


class TermCreate(BaseModel):
    session_id: int
    name: str = Field(..., min_length=1, max_length=50)
    starts_on: date | None = None
    ends_on: date | None = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.starts_on and self.ends_on and self.ends_on < self.starts_on:
            raise ValueError("ends_on must not be before starts_on")
        return self


class TermResponse(BaseModel):
    id: int
    school_id: int
    session_id: int
    name: str
    starts_on: date | None
    ends_on: date | None

    model_config = {"from_attributes": True}


class ClassGroupCreate(BaseModel):
    class_year: str = Field(..., min_length=1, max_length=50)
    arm: str | None = Field(None, max_length=20)


class ClassGroupResponse(BaseModel):
    id: int
    school_id: int
    class_year: str
    arm: str | None
    display_name: str

    model_config = {"from_attributes": True}


class StudentCreate(BaseModel):
    admission_no: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    current_class_group_id: int | None = None
    guardian_user_id: str | None = None


class StudentResponse(BaseModel):
    id: int
    school_id: int
    admission_no: str
    first_name: str
    last_name: str
    current_class_group_id: int | None
    guardian_user_id: str | None

    model_config = {"from_attributes": True}


class EnrollmentCreate(BaseModel):
    student_id: int
    term_id: int
    class_group_id: int
    session_id: int | None = None


class EnrollmentResponse(BaseModel):
    id: int
    school_id: int
    student_id: int
    term_id: int
    class_group_id: int
    session_id: int | None
    status: str

    model_config = {"from_attributes": True}
