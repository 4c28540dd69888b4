"""Supabase access for the app. Client and store are cached via Streamlit."""
import streamlit as st
from dotenv import load_dotenv
from supabase import Client

from examprep.database import DatabaseClient, create_client_from_env

load_dotenv()


@st.cache_resource
def get_supabase() -> Client:
    return create_client_from_env()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return create_client_from_env()


@st.cache_resource
def get_database() -> DatabaseClient:
    return DatabaseClient(get_supabase())


def get_database_uncached() -> DatabaseClient:
    return DatabaseClient(get_supabase_uncached())
